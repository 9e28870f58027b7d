"""
reprovision — CLI entrypoint.

Usage:
    python -m reprovision.main --help
    python -m reprovision.main export
    python -m reprovision.main reinstall inventory.json --dry-run
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from reprovision import __version__
from reprovision.core.observability.logging_config import setup_logging

_STATE_STYLE = {
    "installed": ("✓", "green"),
    "exhausted": ("✗", "red"),
    "skipped": ("=", "white"),
    "planned": ("→", "cyan"),
    "cancelled": ("■", "yellow"),
}


@click.group()
@click.version_option(version=__version__, prog_name="reprovision")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to reprovision.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """reprovision — capture installed software, reinstall it elsewhere."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = None

    setup_logging(level=level)


# ── Export ──────────────────────────────────────────────────────


@cli.command()
@click.argument("output", type=click.Path(dir_okay=False), default="inventory.json")
@click.option("--report", "report_path", type=click.Path(dir_okay=False), default=None,
              help="Report path (default: next to the snapshot).")
@click.option("--source", "-s", "sources", multiple=True,
              help="Only run these collectors (registry, winget, chocolatey, appx).")
@click.option("--sequential", is_flag=True, help="Run collectors one after another.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def export(
    ctx: click.Context,
    output: str,
    report_path: str | None,
    sources: tuple[str, ...],
    sequential: bool,
    as_json: bool,
) -> None:
    """Capture installed software into a snapshot.

    Examples:

        reprovision export

        reprovision export D:\\backup\\laptop.json --source winget --source appx
    """
    from reprovision.core.use_cases.export import run_export

    result = run_export(
        output=Path(output),
        report=Path(report_path) if report_path else None,
        config_path=ctx.obj.get("config_path"),
        sources=list(sources) if sources else None,
        parallel=False if sequential else None,
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    snapshot = result.snapshot
    collection = result.collection
    assert snapshot is not None and collection is not None

    click.secho(f"\n📦 Inventory of {snapshot.machine}", fg="cyan", bold=True)
    for name, count in collection.counts.items():
        if name in collection.errors:
            click.secho(f"   ✗ {name:<12} {collection.errors[name]}", fg="red")
        elif name in collection.unavailable:
            click.secho(f"   – {name:<12} not available", fg="yellow")
        else:
            click.echo(f"   ✓ {name:<12} {count} record(s)")
    click.echo()
    click.secho(f"   {snapshot.total} entries", fg="white", bold=True)
    click.echo(f"   💾 Snapshot: {result.snapshot_path}")
    click.echo(f"   📄 Report:   {result.report_path}")
    click.echo()


# ── Reinstall ───────────────────────────────────────────────────


def _print_item(item) -> None:
    glyph, color = _STATE_STYLE.get(item.state.value, ("•", "white"))
    detail = ""
    if item.installed_by is not None:
        detail = f"  ← {item.installed_by.label}"
    elif item.follow_up is not None:
        detail = f"  ({item.follow_up.reason})"
    click.secho(f"   {glyph} {item.entry.name}", fg=color, nl=False)
    click.echo(detail)


@cli.command()
@click.argument("snapshot", type=click.Path(dir_okay=False))
@click.option("--dry-run", is_flag=True, help="Show what would be installed, install nothing.")
@click.option("--mock", is_flag=True, help="Use mock adapters (no real installs).")
@click.option("--skip-present/--no-skip-present", default=None,
              help="Skip software already on this machine (default: from config).")
@click.option("--timeout", "install_timeout", type=click.IntRange(min=1), default=None,
              help="Seconds allowed per install attempt.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def reinstall(
    ctx: click.Context,
    snapshot: str,
    dry_run: bool,
    mock: bool,
    skip_present: bool | None,
    install_timeout: int | None,
    as_json: bool,
) -> None:
    """Reinstall the software listed in a snapshot.

    Examples:

        reprovision reinstall inventory.json --dry-run

        reprovision reinstall inventory.json --skip-present --timeout 600
    """
    import threading

    from reprovision.core.use_cases.reinstall import interrupt_cancels, run_reinstall

    quiet = ctx.obj.get("quiet", False)
    show_progress = not as_json and not quiet

    if show_progress:
        mode_label = "[dry-run] " if dry_run else "[mock] " if mock else ""
        click.secho(f"\n⚡ {mode_label}Reinstalling from {snapshot}", fg="cyan", bold=True)
        click.echo()

    cancel = threading.Event()
    with interrupt_cancels(cancel):
        result = run_reinstall(
            snapshot_path=Path(snapshot),
            config_path=ctx.obj.get("config_path"),
            dry_run=dry_run,
            mock_mode=mock,
            skip_present=skip_present,
            install_timeout=install_timeout,
            cancel_event=cancel,
            on_progress=_print_item if show_progress else None,
        )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        if result.error:
            sys.exit(1)
        return

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(1)

    report = result.report
    assert report is not None

    click.echo()
    status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(report.status, "white")
    click.secho("   Summary: ", fg="white", bold=True, nl=False)
    click.secho(report.status, fg=status_color)
    counts = report.counts()
    for key in ("installed", "renamed", "failed", "manual"):
        click.echo(f"     {key:<10} {counts[key]}")
    for key in ("skipped", "cancelled", "planned"):
        if counts[key]:
            click.echo(f"     {key:<10} {counts[key]}")

    if report.follow_ups:
        click.echo()
        click.secho("   Manual follow-up:", fg="yellow", bold=True)
        width = min(max(len(f.name) for f in report.follow_ups), 50)
        for follow_up in report.follow_ups:
            click.echo(f"     • {follow_up.name:<{width}}  {follow_up.reason}")

    click.echo()


# ── Show ────────────────────────────────────────────────────────


@cli.command()
@click.argument("snapshot", type=click.Path(dir_okay=False))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
def show(snapshot: str, as_json: bool) -> None:
    """Render the report of an existing snapshot."""
    from reprovision.core.persistence.report import render_report
    from reprovision.core.persistence.snapshot_file import (
        SnapshotError,
        load_snapshot,
        snapshot_to_document,
    )

    try:
        loaded = load_snapshot(Path(snapshot))
    except SnapshotError as e:
        if as_json:
            click.echo(json.dumps({"error": str(e)}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(snapshot_to_document(loaded), indent=2, ensure_ascii=False))
        return

    click.echo(render_report(loaded), nl=False)


# ── Config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Settings commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate reprovision.yml."""
    from reprovision.core.use_cases.config_check import check_config

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else 1)
        return

    if result.valid:
        assert result.settings is not None
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        if result.config_path:
            click.echo(f"   File: {result.config_path}")
        click.echo(f"   Sources: {', '.join(result.settings.sources.enabled_names()) or 'none'}")
        click.echo(f"   Renamed packages: {len(result.settings.reinstall.renamed_packages)}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(1)

    click.echo()


# ── Register sub-command groups from reprovision/ui/cli/ ────────

from reprovision.ui.cli.history import history
from reprovision.ui.cli.sources import sources

cli.add_command(history)
cli.add_command(sources)


if __name__ == "__main__":
    cli()
