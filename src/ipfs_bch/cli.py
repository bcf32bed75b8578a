"""CLI entry point for the ipfs-bch pinning client."""

from __future__ import annotations

import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

import click

from ipfs_bch.config import load_config
from ipfs_bch.electrum.client import ElectrumClient
from ipfs_bch.errors import IpfsBchError, ParseError, RefundError, SupersededError
from ipfs_bch.models.config import ClientConfig
from ipfs_bch.models.events import DepositEvent
from ipfs_bch.protocol.builder import format_amount, format_size
from ipfs_bch.script.codec import decode_hex
from ipfs_bch.session import PinSession
from ipfs_bch.storage.sqlite import SQLiteHistoryStore

PUBLIC_GATEWAYS = ("https://ipfs.io", "https://dweb.link")


def _print_params(params) -> None:
    click.echo(f"Fee:        {params.fee} sats ({format_amount(params.fee)} BCH)")
    click.echo(f"Max size:   {params.max_size} bytes ({format_size(params.max_size)})")


def _print_request(request) -> None:
    click.echo(f"URL:        {request.url}")
    click.echo(f"Fee:        {request.fee_sats} sats ({format_amount(request.fee_sats)} BCH)")
    click.echo(f"Deposit:    {request.deposit_address}")
    click.echo(f"Script:     {request.encoded_bytes.hex()}")
    click.echo(f"Pay:        {request.pay_instruction}")


def _gateway_links(cfg: ClientConfig, cid: str) -> list[str]:
    return [f"{base}/ipfs/{cid}" for base in (cfg.gateway_url, *PUBLIC_GATEWAYS)]


def _chunk_text(chunk: bytes) -> str:
    try:
        return chunk.decode("utf-8")
    except UnicodeDecodeError:
        return f"0x{chunk.hex()}"


async def _open(cfg: ClientConfig, with_store: bool = False):
    client = ElectrumClient(cfg.electrum_url, request_timeout=cfg.request_timeout)
    await client.connect()
    store = None
    if with_store:
        store = SQLiteHistoryStore(cfg.db_path)
        await store.initialize()
    session = PinSession.from_config(cfg, client, store=store)
    return client, store, session


async def _close(client: ElectrumClient, store, session: PinSession) -> None:
    await session.close()
    if store is not None:
        await store.close()
    await client.close()


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """ipfs-bch - pay a Bitcoin Cash fee to pin a file on IPFS."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show client configuration."""
    cfg = load_config(ctx.obj["config_path"])
    click.echo(f"Network:    {cfg.network.value}")
    click.echo(f"Electrum:   {cfg.electrum_url}")
    click.echo(f"Deposit:    {cfg.deposit_address}")
    click.echo(f"Receipt:    {cfg.receipt_address}")
    click.echo(f"Token:      {cfg.param_token_id}")
    click.echo(f"Upload:     {cfg.upload_url}")
    click.echo(f"Gateway:    {cfg.gateway_url}")
    click.echo(f"DB path:    {cfg.db_path}")


@cli.command()
@click.pass_context
def params(ctx: click.Context) -> None:
    """Resolve the current fee and maximum file size from the chain."""
    cfg = load_config(ctx.obj["config_path"])

    async def _params():
        client, store, session = await _open(cfg)
        try:
            _print_params(await session.refresh_parameters())
        finally:
            await _close(client, store, session)

    try:
        asyncio.run(_params())
    except IpfsBchError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@cli.command("decode")
@click.argument("script_hex")
def decode_cmd(script_hex: str) -> None:
    """Print the chunks of a null-data script given as hex."""
    script_hex = script_hex.strip()
    if not script_hex.lower().startswith("6a"):
        # Wallet-style op_return_raw omits the marker
        script_hex = "6a" + script_hex
    try:
        chunks = decode_hex(script_hex)
    except ParseError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    for i, chunk in enumerate(chunks):
        click.echo(f"  [{i}] ({len(chunk)} bytes) {_chunk_text(chunk)}")


# ── Requests ───────────────────────────────────────────


@cli.command()
@click.argument("url")
@click.pass_context
def request(ctx: click.Context, url: str) -> None:
    """Validate URL, check its size and print the payment instruction."""
    cfg = load_config(ctx.obj["config_path"])

    async def _request() -> bool:
        client, store, session = await _open(cfg)
        try:
            await session.refresh_parameters()
            built = await session.submit(url)
            if built is None:
                click.echo(f"Error: {session.error}", err=True)
                return False
            _print_request(built)
            return True
        finally:
            await _close(client, store, session)

    try:
        ok = asyncio.run(_request())
    except IpfsBchError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    if not ok:
        sys.exit(1)


@cli.command()
@click.argument("url")
@click.pass_context
def pin(ctx: click.Context, url: str) -> None:
    """Build a pin request and wait for the service to settle it.

    Pay the printed instruction from any wallet; the command exits once the
    receipt arrives.
    """
    cfg = load_config(ctx.obj["config_path"])

    async def _pin() -> int:
        client, store, session = await _open(cfg, with_store=True)
        try:
            await session.refresh_parameters()
            built = await session.submit(url)
            if built is None:
                click.echo(f"Error: {session.error}", err=True)
                return 1

            _print_request(built)
            click.echo("\nWaiting for payment...")
            watch = session.watcher.session
            async for event in watch:
                if isinstance(event, DepositEvent):
                    click.echo(f"Deposit:    {event.transaction_id}")
                    click.echo("Waiting for receipt...")
                    break

            try:
                receipt = await session.wait()
            except RefundError as exc:
                click.echo(f"\n{exc}", err=True)
                click.echo(f"Receipt:    {exc.transaction_id}", err=True)
                return 1

            click.echo(f"\nPinned:     {receipt.cid}")
            click.echo(f"Receipt:    {receipt.transaction_id}")
            for link in _gateway_links(cfg, receipt.cid):
                click.echo(f"  {link}")
            return 0
        finally:
            await _close(client, store, session)

    try:
        code = asyncio.run(_pin())
    except (IpfsBchError, SupersededError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nStopped watching.", err=True)
        sys.exit(130)
    sys.exit(code)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def upload(ctx: click.Context, path: Path) -> None:
    """Upload a local file to the service and print the URL to pin."""
    cfg = load_config(ctx.obj["config_path"])
    content = path.read_bytes()
    content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"

    async def _upload() -> str | None:
        client, store, session = await _open(cfg)
        try:
            await session.refresh_parameters()
            url = await session.upload(content, path.name, content_type)
            if url is None:
                click.echo(f"Error: {session.error}", err=True)
            return url
        finally:
            await _close(client, store, session)

    try:
        url = asyncio.run(_upload())
    except IpfsBchError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    if url is None:
        sys.exit(1)
    click.echo(url)
    click.echo(f"Run 'ipfs-bch pin {url}' to pin it.")


# ── History ────────────────────────────────────────────


@cli.command()
@click.option("-n", "--limit", type=int, default=20, help="Number of recent requests to show")
@click.option("--activity", is_flag=True, help="Show the activity log instead")
@click.pass_context
def history(ctx: click.Context, limit: int, activity: bool) -> None:
    """Show recent pin requests and their outcome."""
    cfg = load_config(ctx.obj["config_path"])

    async def _history():
        store = SQLiteHistoryStore(cfg.db_path)
        await store.initialize()
        try:
            if activity:
                entries = await store.get_recent_activity(limit)
                if not entries:
                    click.echo("No activity recorded.")
                    return
                for a in entries:
                    txid = f" tx={a.txid[:16]}..." if a.txid else ""
                    click.echo(f"  {a.created_at} [{a.event_type:20s}] {a.message}{txid}")
                return

            requests = await store.get_recent_requests(limit)
            if not requests:
                click.echo("No requests recorded.")
                return
            for r in requests:
                outcome = r.cid or r.refund_reason or ""
                click.echo(
                    f"  #{r.id} [{r.status:16s}] fee={r.fee_sats} url={r.url[:48]} {outcome}"
                )
        finally:
            await store.close()

    asyncio.run(_history())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
