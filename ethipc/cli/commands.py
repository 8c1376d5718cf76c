"""CLI commands for ethipc.

Each command opens the node IPC channel, issues one wallet operation,
waits for its result event and prints it.
"""

from __future__ import annotations

import asyncio
import getpass
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Awaitable, Callable

import typer
from rich.console import Console
from rich.table import Table

from ethipc import __logo__, __version__
from ethipc.cli.logging_utils import configure_cli_logging
from ethipc.cli.rpc_utils import run_operation
from ethipc.client import IpcClient
from ethipc.config.loader import load_config
from ethipc.config.schema import Config
from ethipc.rpc.events import ClientEvent
from ethipc.utils.exceptions import EthIpcError, ValidationError
from ethipc.utils.units import ether_to_wei, wei_to_ether

app = typer.Typer(
    name="ethipc",
    help=f"{__logo__} ethipc - Ethereum node wallet over local IPC",
    no_args_is_help=True,
)

console = Console()

_state: dict[str, Any] = {"config": None, "ipc_path": None}


def _make_client(config: Config) -> IpcClient:
    return IpcClient(config)


@asynccontextmanager
async def _session(config: Config) -> AsyncIterator[IpcClient]:
    client = _make_client(config)
    try:
        if not await client.connect(_state["ipc_path"]):
            raise EthIpcError(f"Cannot connect to {client.path or config.node.ipc_path}: {client.error}", code="CONNECT_FAILED")
        yield client
    finally:
        await client.close()


def _run(body: Callable[[IpcClient, Config], Awaitable[None]]) -> None:
    config: Config = _state["config"]

    async def main() -> None:
        async with _session(config) as client:
            await body(client, config)

    try:
        asyncio.run(main())
    except ValidationError as e:
        raise typer.BadParameter(e.message) from e
    except EthIpcError as e:
        console.print(f"[red]✗[/red] {e.message}")
        if e.rpc_code:
            console.print(f"[dim]code: {e.rpc_code}[/dim]")
        raise typer.Exit(1) from e


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"{__logo__} ethipc v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ipc_path: str = typer.Option(None, "--ipc-path", help="Node IPC socket (default: config node.ipcPath)"),
    config_path: str = typer.Option(None, "--config", help="Config file (default: ~/.ethipc/config.json)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Print IPC traffic and pipeline logs"),
    version: bool = typer.Option(None, "--version", callback=_version_callback, is_eager=True),
) -> None:
    """ethipc - Ethereum node wallet over local IPC."""
    try:
        cfg = load_config(Path(config_path) if config_path else None)
    except ValueError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(1) from e
    _state["ipc_path"] = ipc_path
    _state["config"] = cfg
    configure_cli_logging(
        verbose=verbose,
        level=cfg.logging.level,
        file_name="ethipc" if cfg.logging.file_enabled else None,
    )


@app.command()
def status() -> None:
    """Show connection state, peer health and chain head."""

    async def body(client: IpcClient, config: Config) -> None:
        timeout = config.wallet.request_timeout_seconds
        peers = await run_operation(client, client.get_peer_count, ClientEvent.PEER_COUNT_CHANGED, timeout=timeout)
        block = await run_operation(client, client.get_block_number, ClientEvent.BLOCK_NUMBER_DONE, timeout=timeout)
        console.print(f"{__logo__} ethipc Status\n")
        console.print(f"IPC: {client.path} [green]✓[/green]")
        console.print(f"State: {client.connection_state_str}")
        console.print(f"Peers: {peers}")
        console.print(f"Block: {block}")
        if client.pending_transactions_filter_id is not None:
            console.print(f"[dim]Pending tx filter: {hex(client.pending_transactions_filter_id)}[/dim]")

    _run(body)


@app.command()
def accounts(
    as_json: bool = typer.Option(False, "--json", help="Print accounts as JSON"),
) -> None:
    """List node accounts with balance (ether) and transaction count."""

    async def body(client: IpcClient, config: Config) -> None:
        rows = await run_operation(
            client,
            client.get_accounts,
            ClientEvent.ACCOUNTS_READY,
            timeout=config.wallet.request_timeout_seconds,
        )
        if as_json:
            console.print_json(data=[account.to_dict() for account in rows])
            return
        if not rows:
            console.print("[yellow]No accounts on this node; create one with ethipc new-account[/yellow]")
            return
        table = Table(title="Accounts")
        table.add_column("#", style="dim")
        table.add_column("Address", style="cyan")
        table.add_column("Balance (ether)", justify="right")
        table.add_column("Tx count", justify="right")
        for i, account in enumerate(rows):
            table.add_row(str(i), account.hash, account.balance or "-", str(account.transaction_count))
        console.print(table)

    _run(body)


@app.command("block-number")
def block_number() -> None:
    """Print the latest block number."""

    async def body(client: IpcClient, config: Config) -> None:
        number = await run_operation(
            client,
            client.get_block_number,
            ClientEvent.BLOCK_NUMBER_DONE,
            timeout=config.wallet.request_timeout_seconds,
        )
        console.print(str(number))

    _run(body)


@app.command()
def peers() -> None:
    """Print the peer count and health label."""

    async def body(client: IpcClient, config: Config) -> None:
        count = await run_operation(
            client,
            client.get_peer_count,
            ClientEvent.PEER_COUNT_CHANGED,
            timeout=config.wallet.request_timeout_seconds,
        )
        console.print(f"{count} [dim]({client.connection_state_str})[/dim]")

    _run(body)


@app.command("gas-price")
def gas_price() -> None:
    """Print the current gas price in ether."""

    async def body(client: IpcClient, config: Config) -> None:
        price = await run_operation(
            client,
            client.get_gas_price,
            ClientEvent.GAS_PRICE_DONE,
            timeout=config.wallet.request_timeout_seconds,
        )
        console.print(price)

    _run(body)


def _prompt_new_password() -> str:
    password = getpass.getpass("Account password: ")
    if not password:
        raise typer.BadParameter("Password cannot be empty")
    confirm = getpass.getpass("Repeat password: ")
    if password != confirm:
        raise typer.BadParameter("Passwords do not match")
    return password


@app.command("new-account")
def new_account() -> None:
    """Create a node-managed account protected by a password."""
    password = _prompt_new_password()

    async def body(client: IpcClient, config: Config) -> None:
        address, _ = await run_operation(
            client,
            lambda: client.new_account(password),
            ClientEvent.NEW_ACCOUNT_DONE,
            timeout=config.wallet.request_timeout_seconds,
        )
        console.print("[green]✓[/green] Account created")
        console.print(f"Address: [cyan]{address}[/cyan]")

    _run(body)


@app.command("delete-account")
def delete_account(
    address: str = typer.Argument(..., help="Account address (0x...)"),
) -> None:
    """Delete a node-managed account."""
    password = getpass.getpass("Account password: ")

    async def body(client: IpcClient, config: Config) -> None:
        ok, _ = await run_operation(
            client,
            lambda: client.delete_account(address, password),
            ClientEvent.DELETE_ACCOUNT_DONE,
            timeout=config.wallet.request_timeout_seconds,
        )
        if not ok:
            raise EthIpcError(f"Node refused to delete {address}", code="DELETE_REFUSED")
        console.print(f"[green]✓[/green] Deleted {address}")

    _run(body)


@app.command()
def unlock(
    address: str = typer.Argument(..., help="Account address (0x...)"),
    duration: int = typer.Option(None, "--duration", "-d", help="Seconds to stay unlocked (default: config)"),
) -> None:
    """Unlock an account for signing on the node."""
    password = getpass.getpass("Account password: ")

    async def body(client: IpcClient, config: Config) -> None:
        ok, _ = await run_operation(
            client,
            lambda: client.unlock_account(address, password, duration),
            ClientEvent.UNLOCK_ACCOUNT_DONE,
            timeout=config.wallet.request_timeout_seconds,
        )
        if not ok:
            raise EthIpcError(f"Node refused to unlock {address}", code="UNLOCK_REFUSED")
        console.print(f"[green]✓[/green] Unlocked {address}")

    _run(body)


@app.command()
def send(
    from_address: str = typer.Argument(..., help="Sender address (must be unlocked)"),
    to_address: str = typer.Argument(..., help="Recipient address"),
    value: str = typer.Argument(..., help="Amount in ether, e.g. 0.25"),
) -> None:
    """Send ether; signing happens on the node."""
    try:
        ether_to_wei(value)
    except ValidationError as e:
        raise typer.BadParameter(e.message, param_hint="VALUE") from e

    async def body(client: IpcClient, config: Config) -> None:
        tx_hash = await run_operation(
            client,
            lambda: client.send_transaction(from_address, to_address, value),
            ClientEvent.SEND_TRANSACTION_DONE,
            timeout=config.wallet.request_timeout_seconds,
        )
        console.print(f"[green]✓[/green] Sent {wei_to_ether(ether_to_wei(value))} ether")
        console.print(f"Hash: [cyan]{tx_hash}[/cyan]")

    _run(body)
