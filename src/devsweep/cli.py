"""CLI interface for devsweep."""

from __future__ import annotations

import json
import logging
import sys
from typing import NoReturn

import click

from devsweep.checkers.custom import CustomPathError
from devsweep.core.backend import Backend
from devsweep.core.cache_settings import PRESETS, format_ttl
from devsweep.core.quarantine import QuarantineBusyError, QuarantineError
from devsweep.models.quarantine import CleanupRecord, QuarantineStatus
from devsweep.models.scan_result import CategoryData, CleanupItem
from devsweep.utils import bytes_to_human, format_relative_time


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _build_backend() -> Backend:
    return Backend()


def _fail(message: str, code: int = 1) -> NoReturn:
    click.echo(message, err=True)
    sys.exit(code)


def _record_summary(record: CleanupRecord) -> dict:
    return {
        **record.to_dict(),
        "total_bytes": record.total_bytes,
        "quarantined_bytes": record.quarantined_bytes,
    }


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """devsweep: find and reversibly clean development-tool caches."""
    _setup_logging(verbose)


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@click.option("--no-cache", is_flag=True, help="Rescan every category, ignoring cached results")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(no_cache: bool, as_json: bool) -> None:
    """Scan for reclaimable space (never deletes anything)."""
    backend = _build_backend()

    if not as_json:
        click.echo(f"\n{click.style('🔍', bold=True)} Scanning {len(backend.registry)} categories...\n")

    def on_progress(category: str, status: str) -> None:
        if as_json:
            return
        if status == "error":
            click.echo(f"  {click.style('✗', fg='red')} {category:25s} — error during scan")

    results = backend.scan(use_cache=not no_cache, on_progress=on_progress)

    if as_json:
        click.echo(json.dumps([c.to_dict() for c in results], indent=2))
        return

    for data in results:
        _print_category(data)

    total = sum(c.total_bytes for c in results)
    click.echo(f"\nTotal reclaimable: {click.style(bytes_to_human(total), fg='green', bold=True)}\n")


def _print_category(data: CategoryData) -> None:
    if data.error:
        click.echo(f"  {click.style('✗', fg='red')} {data.name:25s} — {click.style(data.error, fg='red')}")
    elif data.total_bytes > 0:
        click.echo(
            f"  {click.style('✓', fg='green')} {data.name:25s} — "
            f"{click.style(bytes_to_human(data.total_bytes), fg='green', bold=True)} ({data.item_count} items)"
        )
    else:
        click.echo(f"  {click.style('·', fg='bright_black')} {data.name:25s} — nothing to clean")


def _print_item(item: CleanupItem) -> None:
    flag = "" if item.safe_to_delete else click.style(" [review]", fg="yellow")
    click.echo(f"    {item.name:40s} {bytes_to_human(item.size_bytes):>10s}{flag}")
    if item.warning:
        click.echo(f"      {click.style(item.warning, fg='yellow')}")


# ── clean ────────────────────────────────────────────────────────────────

@main.command()
@click.argument("categories", nargs=-1)
@click.option("--unsafe", is_flag=True, help="Include items that are not marked safe to delete")
@click.option("--permanent", is_flag=True, help="Delete immediately instead of moving to quarantine")
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def clean(categories: tuple[str, ...], unsafe: bool, permanent: bool, yes: bool, as_json: bool) -> None:
    """Clean reclaimable items, optionally limited to CATEGORIES.

    Items are moved to quarantine and can be restored with `devsweep restore`
    unless --permanent is given.
    """
    backend = _build_backend()

    unknown = [c for c in categories if c not in backend.registry]
    if unknown:
        _fail(f"Unknown category: {', '.join(unknown)}. Available: {', '.join(backend.registry.categories())}")

    backend.scan()
    items = backend.select_items(categories=categories or None)
    if not unsafe:
        items = [i for i in items if i.safe_to_delete]

    if not items:
        if as_json:
            click.echo(json.dumps({"status": "nothing_to_clean"}))
        else:
            click.echo("Nothing to clean.")
        return

    if not as_json:
        click.echo()
        for item in items:
            _print_item(item)
        total = sum(i.size_bytes for i in items)
        click.echo(f"\nTotal: {click.style(bytes_to_human(total), fg='green', bold=True)}\n")

    if not yes and not as_json:
        action = "Permanently delete" if permanent else "Move to quarantine"
        if not click.confirm(f"{action} {len(items)} items?", default=False):
            click.echo("Aborted.")
            return

    try:
        record = backend.cleanup(items, use_quarantine=not permanent)
    except QuarantineBusyError as e:
        _fail(f"{e}. Try again in a moment.", code=2)

    if as_json:
        click.echo(json.dumps({"status": "cleaned", "record": _record_summary(record)}, indent=2))
        return

    for item in record.items:
        if item.status is QuarantineStatus.FAILED:
            click.echo(f"  {click.style('!', fg='yellow')} {item.name:40s} — {item.error}")
        else:
            click.echo(f"  {click.style('✓', fg='green')} {item.name:40s} — {item.status.value}")

    click.echo(f"\nFreed: {click.style(bytes_to_human(record.total_bytes), fg='green', bold=True)}")
    if not permanent and record.has_quarantined:
        click.echo(f"Undo with: devsweep restore {record.id}")
    click.echo()


# ── history / restore / delete ───────────────────────────────────────────

@main.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def history(as_json: bool) -> None:
    """Show past cleanups, newest first."""
    backend = _build_backend()
    records = backend.records()

    if as_json:
        click.echo(json.dumps([_record_summary(r) for r in records], indent=2))
        return

    if not records:
        click.echo("No cleanups recorded.")
        return

    for record in records:
        when = format_relative_time(record.timestamp.isoformat())
        click.echo(
            f"\n  {click.style(record.id, fg='cyan', bold=True)}  {when}  "
            f"{record.success_count} ok, {record.failed_count} failed, "
            f"{bytes_to_human(record.quarantined_bytes)} in quarantine"
        )
        for index, item in enumerate(record.items):
            click.echo(f"    [{index}] {item.name:40s} {bytes_to_human(item.size_bytes):>10s}  {item.status.value}")

    stats = backend.quarantine_stats()
    click.echo(
        f"\n{stats.total_records} records, {stats.restorable_records} restorable, "
        f"{bytes_to_human(stats.quarantined_bytes)} in quarantine\n"
    )


@main.command()
@click.argument("record_id")
def restore(record_id: str) -> None:
    """Move the quarantined items of RECORD_ID back to their original places."""
    backend = _build_backend()
    try:
        outcomes = backend.restore(record_id)
    except QuarantineBusyError as e:
        _fail(f"{e}. Try again in a moment.", code=2)
    except QuarantineError as e:
        _fail(str(e))

    for outcome in outcomes:
        mark = click.style("✓", fg="green") if outcome.success else click.style("!", fg="yellow")
        click.echo(f"  {mark} [{outcome.index}] {outcome.name:40s} — {outcome.message}")

    if outcomes and not any(o.success for o in outcomes):
        sys.exit(1)


@main.command()
@click.argument("record_id")
@click.argument("index", type=int)
def delete(record_id: str, index: int) -> None:
    """Permanently delete item INDEX of RECORD_ID from quarantine."""
    backend = _build_backend()
    try:
        outcome = backend.delete_permanent(record_id, index)
    except QuarantineBusyError as e:
        _fail(f"{e}. Try again in a moment.", code=2)
    except QuarantineError as e:
        _fail(str(e))

    if not outcome.success:
        _fail(outcome.message)
    click.echo(outcome.message)


@main.command()
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation")
def purge(yes: bool) -> None:
    """Permanently delete everything in quarantine and clear the history."""
    backend = _build_backend()
    stats = backend.quarantine_stats()
    if not yes and not click.confirm(
        f"Permanently delete {bytes_to_human(stats.quarantined_bytes)} and {stats.total_records} records?",
        default=False,
    ):
        click.echo("Aborted.")
        return
    try:
        count = backend.clear_quarantine()
    except QuarantineBusyError as e:
        _fail(f"{e}. Try again in a moment.", code=2)
    click.echo(f"Removed {count} records.")


# ── ttl ──────────────────────────────────────────────────────────────────

@main.group()
def ttl() -> None:
    """Scan cache lifetime per category."""


@ttl.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def ttl_list(as_json: bool) -> None:
    """Show the cache TTL of every category."""
    backend = _build_backend()
    ttls = {c: backend.get_ttl(c) for c in backend.registry.categories()}
    if as_json:
        click.echo(json.dumps(ttls, indent=2))
        return
    for checker in backend.registry:
        line = f"  {checker.category:25s} {format_ttl(ttls[checker.category]):12s}"
        if checker.description:
            line += f" {click.style(checker.description, fg='bright_black')}"
        click.echo(line.rstrip())


@ttl.command("set")
@click.argument("category")
@click.argument("seconds", type=click.IntRange(min=0))
def ttl_set(category: str, seconds: int) -> None:
    """Set the cache TTL of CATEGORY (0 disables caching)."""
    backend = _build_backend()
    if category not in backend.registry:
        _fail(f"Unknown category: {category}. Available: {', '.join(backend.registry.categories())}")
    backend.set_ttl(category, seconds)
    click.echo(f"{category}: {format_ttl(seconds)}")


@ttl.command("reset")
def ttl_reset() -> None:
    """Restore the built-in TTLs."""
    _build_backend().reset_to_defaults()
    click.echo("Cache TTLs reset to defaults.")


@ttl.command("preset")
@click.argument("name", type=click.Choice(sorted(PRESETS)))
def ttl_preset(name: str) -> None:
    """Apply a named TTL preset."""
    _build_backend().apply_preset(name)
    click.echo(f"Applied '{name}' preset.")


# ── custom paths ─────────────────────────────────────────────────────────

@main.group()
def paths() -> None:
    """Extra directories reported under "Custom Paths"."""


@paths.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def paths_list(as_json: bool) -> None:
    """Show configured custom paths with their indexes."""
    entries = _build_backend().custom_paths()
    if as_json:
        click.echo(json.dumps([e.to_dict() for e in entries], indent=2))
        return
    if not entries:
        click.echo("No custom paths configured.")
        return
    for index, entry in enumerate(entries):
        state = "" if entry.enabled else click.style(" [disabled]", fg="yellow")
        click.echo(f"  [{index}] {entry.display_label:25s} {entry.path}{state}")


@paths.command("add")
@click.argument("path")
@click.option("--label", default="", help="Name shown in scan results")
def paths_add(path: str, label: str) -> None:
    """Scan the existing directory PATH as a custom path."""
    try:
        entry = _build_backend().add_custom_path(path, label)
    except CustomPathError as e:
        _fail(str(e))
    click.echo(f"Added {entry.path}")


@paths.command("remove")
@click.argument("index", type=int)
def paths_remove(index: int) -> None:
    """Stop scanning the custom path at INDEX."""
    try:
        entry = _build_backend().remove_custom_path(index)
    except CustomPathError as e:
        _fail(str(e))
    click.echo(f"Removed {entry.path}")


@paths.command("toggle")
@click.argument("index", type=int)
def paths_toggle(index: int) -> None:
    """Enable or disable the custom path at INDEX."""
    try:
        entry = _build_backend().toggle_custom_path(index)
    except CustomPathError as e:
        _fail(str(e))
    click.echo(f"{'Enabled' if entry.enabled else 'Disabled'} {entry.path}")


# ── service ──────────────────────────────────────────────────────────────

@main.group()
def service() -> None:
    """D-Bus service management."""


@service.command("start")
def service_start() -> None:
    """Start the D-Bus service in foreground."""
    from devsweep.dbus_service import start_service

    click.echo("Starting devsweep D-Bus service...")
    start_service()
