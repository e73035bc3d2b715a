"""Typer CLI entrypoint."""

from __future__ import annotations

import logging

import typer

from headsetbatt.core.config import load_product_name, load_settings
from headsetbatt.core.errors import HeadsetBattError
from headsetbatt.core.scheduler import PollLoop
from headsetbatt.core.service import BatteryService
from headsetbatt.sinks.homeassistant import HomeAssistantSink

app = typer.Typer(help="Report a HID headset's battery level to Home Assistant")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging")) -> None:
    logging.basicConfig(level=logging.DEBUG if verbose else logging.INFO, format=_LOG_FORMAT)


def _build_service(**kwargs) -> BatteryService:
    service = BatteryService(**kwargs)
    for warning in getattr(service, "load_warnings", ()):
        typer.echo(f"Warning: {warning}", err=True)
    return service


@app.command("run")
def run_loop(
    interval: float | None = typer.Option(None, "--interval", help="Seconds between cycles"),
    cycles: int | None = typer.Option(None, "--cycles", help="Stop after this many cycles"),
) -> None:
    """Poll the headset and report its battery until interrupted."""
    try:
        settings = load_settings()
        service = _build_service(
            sink=HomeAssistantSink(settings.base_url, settings.api_key),
            product_name=settings.product_name,
            entity_id=settings.entity_id,
            strict=settings.strict,
        )
        loop = PollLoop(service, interval_s=interval or settings.interval_s)
        loop.run(max_cycles=cycles)
    except KeyboardInterrupt:
        typer.echo("Stopped")
    except HeadsetBattError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("once")
def run_once(
    report: bool = typer.Option(True, "--report/--no-report", help="Send the reading to Home Assistant"),
) -> None:
    """Run a single discovery and battery query cycle."""
    try:
        if report:
            settings = load_settings()
            service = _build_service(
                sink=HomeAssistantSink(settings.base_url, settings.api_key),
                product_name=settings.product_name,
                entity_id=settings.entity_id,
                strict=settings.strict,
            )
        else:
            service = _build_service(product_name=load_product_name())
        reading = service.run_cycle()
        if reading is None:
            typer.echo("No battery reading this cycle", err=True)
            raise typer.Exit(code=1)
        typer.echo(f"{reading.product}: {reading.level}% (protocol {reading.protocol_id})")
    except HeadsetBattError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("devices")
def list_devices() -> None:
    """List attached HID endpoints and the protocol each would use."""
    try:
        service = _build_service()
        devices = service.list_devices()
        if not devices:
            typer.echo("No HID devices found")
            return

        for device in devices:
            entry = device.entry
            typer.echo(
                f"{entry.vendor_id:04x}:{entry.product_id:04x} {entry.manufacturer} {entry.product} "
                f"usage_page=0x{entry.usage_page:04x} usage=0x{entry.usage:04x} "
                f"interface={entry.interface_number} -> {device.protocol_id}"
            )
    except HeadsetBattError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("protocols")
def list_protocols() -> None:
    """List the protocol table in match order."""
    try:
        service = _build_service()
        for row in service.list_protocols():
            flags = []
            if row.pre_read:
                flags.append("pre-read")
            if row.fallback:
                flags.append("fallback")
            suffix = f" [{', '.join(flags)}]" if flags else ""
            typer.echo(f"{row.id}: {row.name}{suffix}")
            typer.echo(
                f"  match: '{row.manufacturer_contains}' / '{row.product_contains}' "
                f"request={row.request.hex()} battery_offset={row.battery_offset}"
            )
    except HeadsetBattError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


def run() -> None:
    app()


if __name__ == "__main__":
    run()
