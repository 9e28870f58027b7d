"""
CLI commands for inventory sources and install adapters.

Thin wrappers over the collectors and the adapter registry.
"""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from reprovision.core.collectors.runner import COLLECTOR_NAMES


def _load_settings(ctx: click.Context):
    from reprovision.core.config.loader import ConfigError, load_settings

    config_path: Path | None = ctx.obj.get("config_path")
    try:
        return load_settings(config_path)
    except ConfigError as e:
        click.secho(f"❌ {e}", fg="red")
        sys.exit(1)


@click.group()
def sources() -> None:
    """Sources — collector and install adapter availability."""


# ── Availability ────────────────────────────────────────────────


@sources.command("list")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def list_sources(ctx: click.Context, as_json: bool) -> None:
    """Show which collectors and install adapters work on this machine."""
    from reprovision.core.collectors.runner import build_collectors
    from reprovision.core.use_cases.reinstall import default_registry

    settings = _load_settings(ctx)
    enabled = set(settings.sources.enabled_names())

    collectors = []
    for collector in build_collectors(settings, only=COLLECTOR_NAMES):
        try:
            available = collector.is_available()
        except Exception:
            available = False
        collectors.append({
            "name": collector.name,
            "kind": collector.kind.value,
            "enabled": collector.name in enabled,
            "available": available,
        })

    adapters = list(default_registry().adapter_status().values())

    if as_json:
        click.echo(json.dumps({"collectors": collectors, "adapters": adapters}, indent=2))
        return

    click.secho("🔍 Collectors:", fg="cyan", bold=True)
    for c in collectors:
        icon = "✅" if c["available"] else "❌"
        disabled = "" if c["enabled"] else "  (disabled)"
        click.echo(f"   {icon} {c['name']:<12} [{c['kind']}]{disabled}")

    click.echo()
    click.secho("📦 Install adapters:", fg="cyan", bold=True)
    for a in adapters:
        icon = "✅" if a["available"] else "❌"
        click.echo(f"   {icon} {a['name']}")
    click.echo()


# ── Scan ────────────────────────────────────────────────────────


@sources.command("scan")
@click.argument("name", type=click.Choice(COLLECTOR_NAMES))
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def scan(ctx: click.Context, name: str, as_json: bool) -> None:
    """Run one collector and print what it reports."""
    from reprovision.core.collectors.runner import build_collectors, collect_all

    settings = _load_settings(ctx)
    collection = collect_all(build_collectors(settings, only=[name]), parallel=False)

    if as_json:
        click.echo(json.dumps({
            **collection.to_dict(),
            "records": [r.model_dump(mode="json", by_alias=True) for r in collection.records],
        }, indent=2))
        if collection.errors:
            sys.exit(1)
        return

    if name in collection.errors:
        click.secho(f"❌ {name}: {collection.errors[name]}", fg="red")
        sys.exit(1)

    if name in collection.unavailable:
        click.secho(f"⚠️  {name} is not available on this machine", fg="yellow")
        return

    click.secho(f"🔍 {name}: {collection.total} record(s)", fg="cyan", bold=True)
    for record in collection.records:
        version = record.version or "?"
        ids = ", ".join(ref.identifier for ref in record.source_info)
        click.echo(f"   {record.name:<40} {version:<16} {ids}")
    click.echo()
