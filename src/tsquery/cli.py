"""tsquery CLI - run instant and range queries against a datasource."""

import asyncio
import json
import logging
import math
from datetime import datetime, timezone
from typing import Optional

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import __version__
from .base import Metric, QueryOverrides
from .config import DatasourceConfig, build_adapter, build_client, load_config, parse_duration
from .engines import EngineRegistry, list_engines
from .errors import DatasourceError
from .types import DataSourceType

console = Console()


def setup_logging(level: str):
    """Configure logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()],
    )


def parse_timestamp(value: str) -> datetime:
    """Parse unix seconds or an ISO-8601 timestamp. Naive values are UTC."""
    try:
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    except ValueError:
        pass
    try:
        ts = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise click.BadParameter(f"invalid timestamp {value!r}: expected unix seconds or ISO-8601")
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _parse_params(values: tuple[str, ...]) -> Optional[dict[str, list[str]]]:
    if not values:
        return None
    params: dict[str, list[str]] = {}
    for item in values:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"invalid param {item!r}: expected key=value")
        params.setdefault(key, []).append(value)
    return params


def _load(config_path: Optional[str], url: Optional[str], log_level: Optional[str]) -> DatasourceConfig:
    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e))
    setup_logging(log_level or config.log_level)
    if url:
        config.url = url
    return config


def _overrides(engine_type: Optional[str], eval_interval: Optional[str], params: tuple[str, ...],
               config: DatasourceConfig) -> Optional[QueryOverrides]:
    if not engine_type and not eval_interval and not params:
        return None
    try:
        return QueryOverrides(
            engine_type=DataSourceType.parse(engine_type) if engine_type else None,
            evaluation_interval=parse_duration(eval_interval) if eval_interval else config.evaluation_interval,
            extra_params=_parse_params(params),
        )
    except ValueError as e:
        raise click.BadParameter(str(e))


def _execute(config: DatasourceConfig, overrides: Optional[QueryOverrides], run) -> list[Metric]:
    async def _run():
        async with build_client(config) as client:
            adapter = build_adapter(config, client)
            querier = adapter.build_with_params(overrides) if overrides else adapter
            return await run(querier)

    try:
        return asyncio.run(_run())
    except (DatasourceError, ValueError) as e:
        console.print(f"[red]x {escape(str(e))}[/red]")
        raise SystemExit(1)


def _display_metrics(metrics: list[Metric], output: str):
    """Display query results as a table or JSON."""
    if output == "json":
        click.echo(json.dumps([m.to_dict() for m in metrics], default=str))
        return

    if not metrics:
        console.print("[yellow]No series returned[/yellow]")
        return

    table = Table(title=f"{len(metrics)} Series", show_lines=True)
    table.add_column("Labels", style="cyan")
    table.add_column("Samples", justify="right")
    table.add_column("Last Timestamp", style="dim")
    table.add_column("Last Value", justify="right", style="green")

    for metric in metrics[:50]:  # Show first 50
        labels_str = ", ".join(f"{k}={v}" for k, v in sorted(metric.labels.items())) or "{}"
        if metric.samples:
            last = metric.samples[-1]
            ts_str = datetime.fromtimestamp(last.timestamp, tz=timezone.utc).isoformat()
            value_str = str(last.value) if math.isnan(last.value) else f"{last.value:.4g}"
        else:
            ts_str, value_str = "-", "-"
        table.add_row(escape(labels_str), str(len(metric.samples)), ts_str, value_str)

    console.print(table)

    if len(metrics) > 50:
        console.print(f"[dim]... and {len(metrics) - 50} more series[/dim]")


def query_options(f):
    """Options shared by query commands."""
    options = [
        click.option("--config", "-c", "config_path", help="Path to config file"),
        click.option("--url", "-u", envvar="DATASOURCE_URL", help="Datasource URL"),
        click.option("--type", "-t", "engine_type", type=click.Choice([t.value for t in DataSourceType]),
                     help="Override the datasource type"),
        click.option("--eval-interval", help="Evaluation interval, e.g. 1m"),
        click.option("--param", "-p", "params", multiple=True, help="Extra query param key=value"),
        click.option("--output", "-o", type=click.Choice(["table", "json"]), default="table",
                     help="Output format"),
        click.option("--log-level", help="Log level, defaults to the configured level"),
    ]
    for option in reversed(options):
        f = option(f)
    return f


@click.group()
@click.version_option(version=__version__, prog_name="tsquery")
def main():
    """tsquery - Query Prometheus and Graphite compatible datasources."""
    pass


@main.command()
@click.argument("expr")
@click.option("--time", "time_", help="Evaluation timestamp (unix seconds or ISO-8601), defaults to now")
@query_options
def query(expr, time_, config_path, url, engine_type, eval_interval, params, output, log_level):
    """Run an instant query."""
    config = _load(config_path, url, log_level)
    overrides = _overrides(engine_type, eval_interval, params, config)
    ts = parse_timestamp(time_) if time_ else datetime.now(timezone.utc)

    metrics = _execute(config, overrides, lambda q: q.query(expr, ts))
    _display_metrics(metrics, output)


@main.command("query-range")
@click.argument("expr")
@click.option("--start", required=True, help="Range start (unix seconds or ISO-8601)")
@click.option("--end", help="Range end (unix seconds or ISO-8601), defaults to now")
@query_options
def query_range(expr, start, end, config_path, url, engine_type, eval_interval, params, output, log_level):
    """Run a range query (prometheus datasources only)."""
    config = _load(config_path, url, log_level)
    overrides = _overrides(engine_type, eval_interval, params, config)
    start_ts = parse_timestamp(start)
    end_ts = parse_timestamp(end) if end else datetime.now(timezone.utc)

    metrics = _execute(config, overrides, lambda q: q.query_range(expr, start_ts, end_ts))
    _display_metrics(metrics, output)


@main.command()
def engines():
    """List available query engines."""
    table = Table(show_header=True)
    table.add_column("Type", style="cyan")
    table.add_column("Instant Query")
    table.add_column("Range Query")

    for engine_type in list_engines():
        engine = EngineRegistry.get(engine_type)
        table.add_row(
            str(engine_type),
            "[green]+[/green]",
            "[green]+[/green]" if engine.supports_range else "[red]x[/red]",
        )

    console.print(table)


@main.command()
@click.option("--output", "-o", type=click.Path(), help="Output file path")
def init(output: Optional[str]):
    """Generate a sample configuration file."""
    sample_config = """# tsquery configuration

datasource:
  url: http://localhost:8428
  type: prometheus  # prometheus or graphite

  # Shift instant query timestamps back by this duration
  # lookback: 30s
  # Fixed step for every query, overrides evaluation_interval
  # query_step: 1m
  # evaluation_interval: 1m

  # Add /prometheus or /graphite before the API path
  append_type_prefix: false
  disable_path_append: false

  # Extra query params sent with every request
  # query_params:
  #   nocache: "1"

  timeout: 30
  tls_insecure_skip_verify: false

  # auth:
  #   username: admin  # or set DATASOURCE_USERNAME
  #   password: secret  # or set DATASOURCE_PASSWORD
  #   bearer_token_file: /var/run/secrets/token
  #   headers:
  #     X-Scope-OrgID: tenant-1

log_level: INFO
"""

    output_path = output or "tsquery.yaml"

    with open(output_path, "w") as f:
        f.write(sample_config)

    console.print(f"[green]+ Created config file: {output_path}[/green]")
    console.print("\nEdit the file to point at your datasource, then run:")
    console.print(f"  [cyan]tsquery query 'up' -c {output_path}[/cyan]")


if __name__ == "__main__":
    main()
