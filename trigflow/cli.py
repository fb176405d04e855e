"""
Trigflow CLI - Built with Click.

Offline helpers for authoring triggers:

    trigflow check-conditions '{"toStatus": "done"}' '{"newStatus": "done"}'
    trigflow next-runs "0 9 * * 1-5" --timezone Europe/Moscow --count 3
    trigflow sign-webhook --secret s3cr3t payload.json
"""

import json
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from trigflow.core.config import DEFAULT_TIMEZONE
from trigflow.core.exceptions import InvalidScheduleError
from trigflow.triggers.conditions import matches
from trigflow.triggers.sources.cron import next_fire_time, validate_schedule
from trigflow.triggers.variables import map_variables
from trigflow.triggers.webhook import sign

console = Console()


class OrderedGroup(click.Group):
    """Click Group that lists commands in the order they were added."""

    def list_commands(self, ctx):
        return list(self.commands.keys())


@click.group(cls=OrderedGroup)
@click.version_option(version="0.1.0", prog_name="trigflow")
def cli():
    """
    Trigflow - event-driven process triggers.

    \b
    Commands:
      check-conditions   Evaluate trigger conditions against an event
      map-variables      Show the process variables an event produces
      next-runs          Upcoming fire times of a cron expression
      sign-webhook       Compute the X-Webhook-Signature header for a body
    """


def _load_json(value: str, name: str):
    try:
        return json.loads(value)
    except json.JSONDecodeError as e:
        msg = f"{name} is not valid JSON: {e}"
        raise click.BadParameter(msg) from e


@cli.command(name="check-conditions")
@click.argument("conditions_json")
@click.argument("context_json")
def check_conditions_cmd(conditions_json: str, context_json: str):
    """Evaluate CONDITIONS_JSON against the event CONTEXT_JSON."""
    conditions = _load_json(conditions_json, "CONDITIONS_JSON")
    context = _load_json(context_json, "CONTEXT_JSON")

    if matches(conditions, context):
        console.print("[green]✓ match[/green]")
    else:
        console.print("[red]✗ no match[/red]")
        sys.exit(1)


@cli.command(name="map-variables")
@click.argument("mappings_json")
@click.argument("context_json")
def map_variables_cmd(mappings_json: str, context_json: str):
    """Print the variables MAPPINGS_JSON produces for CONTEXT_JSON."""
    mappings = _load_json(mappings_json, "MAPPINGS_JSON")
    context = _load_json(context_json, "CONTEXT_JSON")

    click.echo(json.dumps(map_variables(mappings, context), indent=2, default=str))


@cli.command(name="next-runs")
@click.argument("expression")
@click.option("--timezone", "-t", default=DEFAULT_TIMEZONE, show_default=True)
@click.option("--count", "-n", default=5, show_default=True, type=click.IntRange(min=1))
def next_runs_cmd(expression: str, timezone: str, count: int):
    """List upcoming fire times of a cron EXPRESSION."""
    runs = []
    try:
        tz = validate_schedule(expression, timezone)
        after = None
        for _ in range(count):
            after = next_fire_time(expression, tz, after)
            runs.append(after)
    except InvalidScheduleError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)

    table = Table(title=f"{expression} ({timezone})")
    table.add_column("#", justify="right", style="dim")
    table.add_column("Local time", style="cyan")
    table.add_column("UTC")

    for index, run in enumerate(runs, start=1):
        table.add_row(str(index), run.astimezone(tz).isoformat(), run.isoformat())

    console.print(table)


@cli.command(name="sign-webhook")
@click.option("--secret", "-s", required=True, help="Secret configured on the webhook trigger")
@click.argument("body_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def sign_webhook_cmd(secret: str, body_file: Path):
    """Compute the signature header for the raw contents of BODY_FILE."""
    click.echo(sign(secret, body_file.read_bytes()))


def main():
    """Main entry point for the trigflow CLI."""
    cli()


if __name__ == "__main__":
    main()
