"""Command-line interface for the call monitor."""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.live import Live
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .analysis.classifier import CallStatus, PhoneState, StateClassifier
from .analysis.telecom import extract_analytics
from .core.adb import AdbClient, AdbError
from .core.file_provider import FileProvider
from .core.poller import (
    Poller,
    create_poller_from_config,
    create_provider_from_config,
    poller_config_from_dict,
)
from .core.provider import ProviderError
from .parsing.dump import parse_dump


console = Console()
logger = logging.getLogger("callwatch")


def setup_logging(log_file: str = "callwatch.log", level: str = "INFO"):
    """Configure logging to file."""
    if logging.getLogger().handlers:
        return logging.getLogger("callwatch")

    log_level = getattr(logging, os.environ.get("CALLWATCH_LOG_LEVEL", level).upper())

    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(log_level)
    file_handler.setFormatter(logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    ))

    logging.basicConfig(
        level=log_level,
        handlers=[file_handler],
    )

    return logging.getLogger("callwatch")


def load_config(config_path: Optional[str]) -> dict:
    """Load configuration from YAML file, then apply environment overrides."""
    import yaml

    config = {}
    if config_path and Path(config_path).exists():
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}
    else:
        # Check default locations
        for default in ["./config.yaml", "~/.config/callwatch/config.yaml"]:
            path = Path(default).expanduser()
            if path.exists():
                with open(path) as f:
                    config = yaml.safe_load(f) or {}
                break

    return apply_env_overrides(config)


def apply_env_overrides(config: dict) -> dict:
    """Apply the ADB_DEVICE_IP / ADB_DEVICE_PORT / POLL_INTERVAL / PORT variables."""
    device = config.get("device") or {}
    poller = config.get("poller") or {}
    server = config.get("server") or {}

    if os.environ.get("ADB_DEVICE_IP"):
        device["host"] = os.environ["ADB_DEVICE_IP"]
    if os.environ.get("ADB_DEVICE_PORT"):
        device["port"] = int(os.environ["ADB_DEVICE_PORT"])
    if os.environ.get("POLL_INTERVAL"):
        # Milliseconds
        poller["interval"] = int(os.environ["POLL_INTERVAL"]) / 1000
    if os.environ.get("PORT"):
        server["port"] = int(os.environ["PORT"])

    config["device"] = device
    config["poller"] = poller
    config["server"] = server
    return config


STATE_COLORS = {
    PhoneState.IDLE: "dim",
    PhoneState.RINGING: "yellow",
    PhoneState.DIALING: "cyan",
    PhoneState.IN_CALL: "green",
}


def status_table(status: Optional[CallStatus]) -> Table:
    """Render a CallStatus as a one-row table."""
    table = Table(title="Call Status")
    table.add_column("Phone State", style="bold")
    table.add_column("Direction")
    table.add_column("Caller ID", style="cyan")
    table.add_column("Duration", justify="right")

    if status is None:
        table.add_row("[dim]waiting...[/dim]", "", "", "")
        return table

    color = STATE_COLORS.get(status.phone_state, "white")
    table.add_row(
        f"[{color}]{status.phone_state.value}[/{color}]",
        escape(status.direction) or "-",
        escape(status.caller_id) or "-",
        status.duration,
    )
    return table


@click.group()
@click.option("--config", "-c", help="Path to config file", default=None)
@click.option("--verbose", "-v", is_flag=True, help="Show verbose debug output")
@click.pass_context
def cli(ctx, config, verbose):
    """Call Monitor - Android call state over adb."""
    ctx.ensure_object(dict)
    setup_logging(os.environ.get("CALLWATCH_LOG_FILE", "callwatch.log"))
    ctx.obj["config"] = load_config(config)

    if verbose:
        debug_handler = RichHandler(console=Console(stderr=True), show_path=False)
        debug_handler.setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
        logger.addHandler(debug_handler)


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/red] {escape(message)}")
    logger.error(message)
    sys.exit(1)


@cli.command()
@click.option("--dump", "-f", "dump_file", type=click.Path(exists=True), help="Read a saved dump instead of the device")
@click.option("--json", "as_json", is_flag=True, help="Print JSON instead of a table")
@click.pass_context
def status(ctx, dump_file, as_json):
    """Show the current call status."""
    if dump_file:
        provider = FileProvider(dump_file)
    else:
        provider = create_provider_from_config(ctx.obj["config"])
    try:
        dump = provider.get_telecom_dump()
    except ProviderError as e:
        _fail(str(e))

    result = StateClassifier().update(dump)

    if as_json:
        click.echo(json.dumps({"status": result.to_dict()}, indent=2))
    else:
        console.print(status_table(result))


@cli.command()
@click.argument("dump_file", type=click.Path(exists=True))
@click.option("--call-id", "-i", help="Only show the analytics block of this call")
def parse(dump_file, call_id):
    """Print a saved dump as a parsed JSON tree."""
    dump = Path(dump_file).read_text(encoding="utf-8", errors="replace")
    tree = extract_analytics(dump, call_id) if call_id else parse_dump(dump)
    click.echo(json.dumps(tree, indent=2))


@cli.command()
@click.option("--interval", "-n", type=float, help="Seconds between polls")
@click.option("--dump", "-f", "dump_file", type=click.Path(exists=True), help="Poll a saved dump instead of the device")
@click.option("--ticks", type=click.IntRange(min=1), help="Stop after this many polls")
@click.pass_context
def watch(ctx, interval, dump_file, ticks):
    """Poll the device and show a live status table."""
    config = ctx.obj["config"]
    if dump_file:
        poller = Poller(FileProvider(dump_file), poller_config_from_dict(config))
    else:
        poller = create_poller_from_config(config)
    if interval is not None:
        poller.config.interval = interval

    info = poller.provider.get_info()
    console.print(f"\n[bold]Watching {info.name}[/bold] [dim](Ctrl+C to stop)[/dim]\n")

    polled = 0

    with Live(status_table(None), console=console, refresh_per_second=4) as live:
        def on_status(status: CallStatus) -> None:
            nonlocal polled
            live.update(status_table(status))
            polled += 1
            if ticks is not None and polled >= ticks:
                poller.stop()

        poller.status_callback = on_status
        try:
            poller.run()
        except KeyboardInterrupt:
            poller.stop()

    console.print("[yellow]Stopped[/yellow]")


@cli.command()
@click.pass_context
def devices(ctx):
    """List devices known to the adb server."""
    device_config = ctx.obj["config"].get("device", {})
    client = AdbClient(adb_path=device_config.get("adb_path", "adb"))

    try:
        if device_config.get("host"):
            client.connect(device_config["host"], int(device_config.get("port", 5555)))
        found = client.list_devices()
    except AdbError as e:
        _fail(str(e))

    if not found:
        console.print("[red]No adb devices found![/red]")
        console.print("\nCheck that the device is reachable and adb debugging is enabled.")
        sys.exit(1)

    table = Table(title="ADB Devices")
    table.add_column("Serial", style="cyan")
    table.add_column("State")
    for device in found:
        color = "green" if device.is_ready else "yellow"
        table.add_row(device.serial, f"[{color}]{device.state}[/{color}]")
    console.print(table)


def _run_action(ctx, name: str, action) -> None:
    provider = create_provider_from_config(ctx.obj["config"])
    try:
        action(provider)
    except ValueError as e:
        _fail(str(e))
    except ProviderError as e:
        _fail(f"{name} failed: {e}")


@cli.command()
@click.argument("number")
@click.pass_context
def call(ctx, number):
    """Dial a phone number on the device."""
    _run_action(ctx, "Dial", lambda provider: provider.dial(number))
    console.print(f"[green]Calling {number}[/green]")


@cli.command()
@click.pass_context
def hangup(ctx):
    """End the active call or reject a ringing one."""
    _run_action(ctx, "Hang up", lambda provider: provider.end_call())
    console.print("[green]Call ended[/green]")


@cli.command()
@click.pass_context
def accept(ctx):
    """Answer the ringing call."""
    _run_action(ctx, "Accept", lambda provider: provider.accept_call())
    console.print("[green]Call accepted[/green]")


@cli.command()
@click.option("--host", default=None, help="Bind address")
@click.option("--port", "-p", type=int, default=None, help="Listen port")
@click.pass_context
def serve(ctx, host, port):
    """Poll the device and serve call status over HTTP."""
    import uvicorn

    from .api import create_app

    config = ctx.obj["config"]
    server_config = config.get("server", {})
    host = host or server_config.get("host", "0.0.0.0")
    port = port or int(server_config.get("port", 3000))

    poller: Poller = create_poller_from_config(config)
    app = create_app(poller)

    console.print(f"\n[bold]Call server[/bold] running on http://{host}:{port}\n")
    logger.info(f"Serving on {host}:{port}")

    poller.start()
    try:
        uvicorn.run(app, host=host, port=port)
    finally:
        poller.stop(timeout=5.0)


def main():
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
