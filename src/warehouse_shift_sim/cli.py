"""Command-line interface for the warehouse shift simulator."""

import asyncio
import json
import logging
import sys
import time
from datetime import timedelta
from pathlib import Path
from typing import NoReturn, Optional

import click
from dotenv import load_dotenv

from .cache import ResultCache
from .config import Config
from .errors import ConfigurationError, ShiftSimError
from .publisher import MQTTPublisher
from .service import ShiftDataService
from .simulator import ShiftSimulator
from .store import ShiftStore
from .windowing import TIME_RANGES, parse_time_range, serialize_points

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default=Path("config/config.yaml"),
    help="Path to config.yaml (defaults are used if missing)",
)
seed_option = click.option(
    "--seed",
    "-s",
    type=int,
    default=None,
    help="Random seed for a reproducible shift",
)


def load_config(config_path: Path, seed: Optional[int] = None) -> Config:
    """YAML file, then .env / environment, then command-line overrides."""
    load_dotenv()
    config = Config.from_env(Config.from_yaml(config_path))
    if seed is not None:
        config.shift.random_seed = seed
    config.validate()
    return config


def build_service(config: Config) -> ShiftDataService:
    """Run a shift simulation and serve it through a fresh store."""
    data = ShiftSimulator(config.shift).run()
    store = ShiftStore(data)
    return ShiftDataService(store, cache=ResultCache(ttl_seconds=config.cache.ttl_seconds))


def _fail(e: Exception) -> NoReturn:
    click.echo(f"Error: {e}", err=True)
    sys.exit(1)


@click.group()
@click.version_option(version="0.1.0")
def main():
    """Warehouse Shift Simulator - synthetic telemetry and KPIs.

    Simulates one warehouse shift (robots, pickers, carts, orders) and
    derives operational KPIs from the generated time series.
    """
    pass


@main.command()
@click.option(
    "--output",
    "-o",
    type=click.Path(path_type=Path),
    default=Path("config"),
    help="Output directory for config files",
)
def init(output):
    """Generate a sample configuration file."""
    output.mkdir(parents=True, exist_ok=True)

    cfg = Config.default()
    config_path = output / "config.yaml"
    cfg.to_yaml(config_path)

    click.echo(f"Created: {config_path}")
    click.echo()
    click.echo("Edit the config file to customize:")
    click.echo("  - Shift and break windows")
    click.echo("  - Robot, picker, cart and order counts")
    click.echo("  - Tick intervals and random seed")
    click.echo("  - MQTT broker settings")
    click.echo()
    click.echo(f"Run with: shift-sim kpis --config {config_path}")


@main.command()
@config_option
@seed_option
def generate(config_path, seed):
    """Simulate a shift and print entity and sample counts."""
    try:
        config = load_config(config_path, seed)
        data = ShiftSimulator(config.shift).run()
    except ConfigurationError as e:
        _fail(e)

    click.echo(f"Shift: {data.shift_start:%Y-%m-%d %H:%M} - {data.shift_end:%H:%M}")
    click.echo("=" * 40)
    click.echo(f"Robots:   {len(data.robots)}")
    click.echo(f"Pickers:  {len(data.pickers)}")
    click.echo(f"Carts:    {len(data.carts)}")
    click.echo(f"Orders:   {len(data.orders)}")
    click.echo()
    for name, count in data.sample_counts().items():
        click.echo(f"{name:<18}{count:>8}")


@main.command()
@config_option
@seed_option
@click.option("--json", "as_json", is_flag=True, default=False, help="Print JSON")
def kpis(config_path, seed, as_json):
    """Print the shift KPIs."""
    try:
        service = build_service(load_config(config_path, seed))
        results = asyncio.run(service.get_kpis())
    except ShiftSimError as e:
        _fail(e)

    if as_json:
        click.echo(json.dumps([k.to_dict() for k in results], indent=2))
        return

    for kpi in results:
        click.echo(
            f"{kpi.name:<24}{kpi.value:>10} {kpi.unit:<9}"
            f"[{kpi.category.value}, {kpi.trend.value}]"
        )


@main.command()
@config_option
@seed_option
def realtime(config_path, seed):
    """Print live counters (active robots, pickers on break, ...)."""
    try:
        service = build_service(load_config(config_path, seed))
        counts = asyncio.run(service.get_realtime_counts())
    except ShiftSimError as e:
        _fail(e)

    click.echo(json.dumps(counts, indent=2))


@main.command()
@config_option
@seed_option
@click.argument("kind", type=click.Choice(["robot", "picker", "cart"]))
@click.argument("entity_id")
@click.option(
    "--range",
    "-r",
    "time_range",
    type=click.Choice(sorted(TIME_RANGES)),
    default="24h",
    help="Time range to look back from now",
)
@click.option(
    "--every",
    type=int,
    default=None,
    help="Average points into buckets of this many minutes",
)
def series(config_path, seed, kind, entity_id, time_range, every):
    """Print the time series for one robot, picker or cart."""
    try:
        parse_time_range(time_range, strict=True)
        service = build_service(load_config(config_path, seed))
        bucket = timedelta(minutes=every) if every else None
        query = {
            "robot": service.get_robot_series,
            "picker": service.get_picker_series,
            "cart": service.get_cart_series,
        }[kind]
        points = asyncio.run(query(entity_id, time_range, bucket))
    except ShiftSimError as e:
        _fail(e)

    if not points:
        click.echo(f"No {kind} samples for {entity_id} in the last {time_range}")
        return
    click.echo(json.dumps(serialize_points(points), indent=2))


@main.command()
@config_option
@seed_option
def health(config_path, seed):
    """Simulate a shift and report store health."""
    try:
        service = build_service(load_config(config_path, seed))
        report = asyncio.run(service.health())
    except ShiftSimError as e:
        _fail(e)

    click.echo(json.dumps(report, indent=2))


@main.command()
@config_option
@seed_option
@click.option("--broker", "-b", default=None, help="MQTT broker address")
@click.option("--port", "-p", type=int, default=None, help="MQTT broker port")
@click.option("--dry-run", is_flag=True, default=False, help="Log instead of publishing")
@click.option(
    "--interval",
    type=float,
    default=0,
    help="Republish every N seconds (0 = publish once)",
)
def publish(config_path, seed, broker, port, dry_run, interval):
    """Publish KPIs, live counters and latest state to MQTT."""
    try:
        config = load_config(config_path, seed)
    except ConfigurationError as e:
        _fail(e)

    if broker:
        config.mqtt.broker = broker
    if port:
        config.mqtt.port = port

    service = build_service(config)
    publisher = MQTTPublisher(config.mqtt, config.topics)
    if not publisher.connect(dry_run=dry_run):
        _fail(ConnectionError(f"Could not connect to {config.mqtt.broker}:{config.mqtt.port}"))

    async def publish_once():
        snapshot = await service.get_snapshot()
        kpi_list = await service.get_kpis()
        counts = await service.get_realtime_counts()
        queued = publisher.publish_kpis(kpi_list)
        queued += publisher.publish_latest_state(snapshot)
        publisher.publish_realtime(counts)
        publisher.publish_status(snapshot)
        # +2 for the realtime and status messages
        logger.info(f"Queued {queued + 2} messages under {publisher.base_topic}")

    try:
        while True:
            asyncio.run(publish_once())
            if interval <= 0:
                break
            time.sleep(interval)
    except KeyboardInterrupt:
        click.echo("\nStopped")
    except ShiftSimError as e:
        _fail(e)
    finally:
        publisher.disconnect()


if __name__ == "__main__":
    main()
