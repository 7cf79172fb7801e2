"""CLI for running a single synchronizer tick."""

from __future__ import annotations

import click
from flask import current_app
from flask.cli import with_appcontext

from dailyfx.services.scheduler import sync_now


@click.command("sync-rates")
@click.option("--final", "final_attempt", is_flag=True, help="Carry yesterday forward if today is unpublished")
@with_appcontext
def sync_rates(final_attempt: bool) -> None:
    """Ensure today's rates are stored."""

    result = sync_now(current_app._get_current_object(), final_attempt=final_attempt)
    if result is None:
        click.echo("Sync failed; see logs.", err=True)
        raise SystemExit(1)

    line = f"{result.target.isoformat()}: {result.outcome.value}"
    if result.detail:
        line += f" ({result.detail})"
    click.echo(line)
    if result.outcome.is_failure:
        raise SystemExit(1)
