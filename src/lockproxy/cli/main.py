import json
import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..address import parse_hash160, parse_hex, to_hex
from ..codec import TransferInstruction, encode_varint
from ..config import ProxyConfig
from ..errors import LockProxyError
from ..manager import LocalCrossChainManager
from ..proxy import LockProxy
from ..runtime import Runtime

console = Console()

DEFAULT_CONFIG = "lockproxy.json"


def _fail(message):
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(1)


def _open_proxy(config_path, signer=None):
    config = ProxyConfig.from_file(config_path)
    runtime = Runtime(witnesses=[parse_hash160(signer)] if signer else [])
    manager = LocalCrossChainManager(config.ccmc_address, config.chain_id, runtime)
    return LockProxy.from_config(config, manager, runtime)


def _print_receipt(receipt, success_message):
    if receipt:
        console.print(f"✅ [bold green]{success_message}[/bold green]")
    else:
        console.print(
            f"❌ [bold red]{receipt.error.value}[/bold red] "
            f"({receipt.kind.value}): {receipt.reason}"
        )
        sys.exit(1)


@click.group()
@click.version_option(version="0.1.0", prog_name="lockproxy")
@click.option("--verbose", "-v", is_flag=True, help="Log proxy activity")
def cli(verbose):
    """Lock proxy tooling - payload codec and binding administration"""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=console, show_path=False)],
        )


# ── Codec ──────────────────────────────────────────────────────────────

@cli.command()
@click.argument("asset_hash")
@click.argument("recipient")
@click.argument("amount", type=int)
def encode(asset_hash, recipient, amount):
    """Encode a transfer instruction payload"""
    try:
        instruction = TransferInstruction(parse_hex(asset_hash), parse_hex(recipient), amount)
        payload = instruction.encode()
    except (ValueError, LockProxyError) as e:
        _fail(e)
    click.echo(payload.hex())


@cli.command()
@click.argument("payload")
def decode(payload):
    """Decode a transfer instruction payload"""
    try:
        instruction = TransferInstruction.decode(parse_hex(payload))
    except (ValueError, LockProxyError) as e:
        _fail(e)

    table = Table(title="Transfer Instruction")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Bytes", style="yellow")
    table.add_row("asset_hash", instruction.asset_hash.hex(), str(len(instruction.asset_hash)))
    table.add_row("recipient", instruction.recipient.hex(), str(len(instruction.recipient)))
    table.add_row("amount", str(instruction.amount), "32")
    console.print(table)


@cli.command()
@click.argument("value", type=int)
def varint(value):
    """Show the varint encoding of VALUE"""
    try:
        click.echo(encode_varint(value).hex())
    except LockProxyError as e:
        _fail(e)


# ── Administration ─────────────────────────────────────────────────────

@cli.command()
@click.option("--config", "config_path", default=DEFAULT_CONFIG, show_default=True)
@click.option("--chain-id", type=int, required=True, help="This chain's id")
@click.option("--proxy", "proxy_address", required=True, help="This proxy's address")
@click.option("--ccmc", "ccmc_address", required=True, help="Cross-chain manager address")
@click.option("--operator", "operator_address", required=True, help="Operator address")
@click.option("--db", "db_path", default="lockproxy.db", show_default=True)
def init(config_path, chain_id, proxy_address, ccmc_address, operator_address, db_path):
    """Write a proxy configuration file"""
    try:
        config = ProxyConfig(
            chain_id=chain_id,
            proxy_address=proxy_address,
            ccmc_address=ccmc_address,
            operator_address=operator_address,
            storage_backend="sqlite",
            db_path=db_path,
        )
    except ValueError as e:
        _fail(e)
    Path(config_path).write_text(json.dumps(config.to_dict(), indent=2) + "\n")
    console.print(f"✅ [bold green]Config written to {config_path}[/bold green]")


@cli.command("bind-proxy")
@click.argument("chain_id", type=int)
@click.argument("proxy_hash")
@click.option("--config", "config_path", default=DEFAULT_CONFIG, show_default=True,
              type=click.Path(exists=True))
@click.option("--signer", help="Address that witnesses the invocation")
def bind_proxy(chain_id, proxy_hash, config_path, signer):
    """Bind the trusted proxy for CHAIN_ID"""
    try:
        proxy = _open_proxy(config_path, signer)
        receipt = proxy.bind_proxy_hash(chain_id, parse_hex(proxy_hash))
        proxy.storage.close()
    except (ValueError, LockProxyError) as e:
        _fail(e)
    _print_receipt(receipt, f"Chain {chain_id} proxy bound to {proxy_hash}")


@cli.command("bind-asset")
@click.argument("asset_hash")
@click.argument("chain_id", type=int)
@click.argument("remote_asset_hash")
@click.option("--config", "config_path", default=DEFAULT_CONFIG, show_default=True,
              type=click.Path(exists=True))
@click.option("--signer", help="Address that witnesses the invocation")
def bind_asset(asset_hash, chain_id, remote_asset_hash, config_path, signer):
    """Bind ASSET_HASH to REMOTE_ASSET_HASH on CHAIN_ID"""
    try:
        proxy = _open_proxy(config_path, signer)
        receipt = proxy.bind_asset_hash(
            parse_hex(asset_hash), chain_id, parse_hex(remote_asset_hash)
        )
        proxy.storage.close()
    except (ValueError, LockProxyError) as e:
        _fail(e)
    _print_receipt(receipt, f"Asset {asset_hash} bound on chain {chain_id}")


@cli.command()
@click.option("--config", "config_path", default=DEFAULT_CONFIG, show_default=True,
              type=click.Path(exists=True))
def bindings(config_path):
    """List proxy and asset bindings"""
    try:
        proxy = _open_proxy(config_path)
        proxies = proxy.registry.proxy_bindings()
        assets = proxy.registry.asset_bindings()
        proxy.storage.close()
    except (ValueError, LockProxyError) as e:
        _fail(e)

    table = Table(title="Proxy Bindings")
    table.add_column("Chain", style="yellow")
    table.add_column("Proxy", style="green")
    for chain_id, address in sorted(proxies.items()):
        table.add_row(str(chain_id), to_hex(address))
    console.print(table)

    table = Table(title="Asset Bindings")
    table.add_column("Local Asset", style="cyan")
    table.add_column("Chain", style="yellow")
    table.add_column("Remote Asset", style="green")
    for local, chain_id, remote in assets:
        table.add_row(to_hex(local), str(chain_id), to_hex(remote))
    console.print(table)


@cli.command("show-config")
@click.option("--config", "config_path", default=DEFAULT_CONFIG, show_default=True,
              type=click.Path(exists=True))
def show_config(config_path):
    """Show the resolved proxy configuration"""
    try:
        config = ProxyConfig.from_file(config_path)
    except (ValueError, OSError) as e:
        _fail(e)
    console.print(Panel.fit(
        json.dumps(config.to_dict(), indent=2),
        title="[bold blue]Proxy Config[/bold blue]",
        border_style="blue",
    ))


if __name__ == "__main__":
    cli()
