"""CLI for backfilling historical daily rates."""

from __future__ import annotations

import click
from flask.cli import with_appcontext

from dailyfx.services.components import get_rate_services
from dailyfx.services.range_resolver import STAGE_ERROR, BackfillProgress
from dailyfx.utils.datetime import parse_iso_date


def _parse_date_option(_ctx, param, value):
    try:
        return parse_iso_date(value)
    except ValueError as exc:
        raise click.BadParameter(f"expected YYYY-MM-DD, got {value!r}", param=param) from exc


def _echo_progress(progress: BackfillProgress) -> None:
    prefix = f"[{progress.stage}]"
    if progress.chunk_info is not None:
        info = progress.chunk_info
        prefix += f" chunk {info.current}/{info.total}"
    click.echo(f"{prefix} {progress.message}", err=progress.stage == STAGE_ERROR)


@click.command("backfill-rates")
@click.option("--from", "start", required=True, callback=_parse_date_option, help="First date (YYYY-MM-DD)")
@click.option("--to", "end", required=True, callback=_parse_date_option, help="Last date (YYYY-MM-DD)")
@with_appcontext
def backfill_rates(start, end) -> None:
    """Fetch and store every missing date between --from and --to."""

    if start > end:
        raise click.BadParameter("--from must not be after --to", param_hint="--from")

    click.echo(f"Backfilling {start.isoformat()}..{end.isoformat()}")
    report = get_rate_services().resolver.ensure_range(start, end, on_progress=_echo_progress)
    click.echo(
        f"Backfill finished: {report.stored} day(s) stored, "
        f"{report.missing_days} missing, {len(report.failed_chunks)} failed chunk(s)."
    )
    if report.failed_chunks:
        raise SystemExit(1)
