"""
CLI command for the run history kept in the audit ledger.

Usage::

    reprovision history
    reprovision history -n 5 --json
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

_STATUS_COLOR = {"ok": "green", "partial": "yellow", "failed": "red"}


@click.command()
@click.option("--limit", "-n", type=click.IntRange(min=1), default=20, show_default=True,
              help="Number of most recent runs to show.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def history(ctx: click.Context, limit: int, as_json: bool) -> None:
    """Show recent export and reinstall runs."""
    from reprovision.core.config.loader import ConfigError, load_settings
    from reprovision.core.persistence.audit import AuditWriter

    config_path: Path | None = ctx.obj.get("config_path")
    try:
        settings = load_settings(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    writer = AuditWriter(state_dir=settings.state_path)
    entries = writer.read_recent(limit)

    if as_json:
        click.echo(json.dumps(
            {"path": str(writer.path), "entries": [e.model_dump(mode="json") for e in entries]},
            indent=2,
            ensure_ascii=False,
        ))
        return

    if not entries:
        click.echo(f"No runs recorded in {writer.path}")
        return

    click.secho(f"\n📜 Last {len(entries)} run(s)", fg="cyan", bold=True)
    for e in entries:
        click.echo(f"   {e.timestamp[:19]}  {e.operation_type:<10} ", nl=False)
        click.secho(f"{e.status or '?':<8}", fg=_STATUS_COLOR.get(e.status, "white"), nl=False)
        click.echo(f" {e.entries_total:>5} entries  {e.snapshot_path}")
        for err in e.errors:
            click.secho(f"      ✗ {err}", fg="red")
    click.echo()
