"""
supac — CLI entrypoint.

Usage:
    python -m supac.main --help
    python -m supac.main sync --dry-run
    python -m supac.main plan --json
"""

from __future__ import annotations

import json
import os
import sys
import threading
from pathlib import Path

import click

from supac import __version__
from supac.core.observability.logging_config import (
    FILE_ENV,
    FILE_LEVEL_ENV,
    resolve_level,
    setup_logging,
)

EXIT_CONFIG_INVALID = 2
EXIT_CANCELLED = 130


@click.group()
@click.version_option(version=__version__, prog_name="supac")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config-dir",
    "config_dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory holding config.yml and packages.yml (default: auto-detect).",
)
@click.option("--mock", is_flag=True, help="Use in-memory mock backends (no real execution).")
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_dir: str | None,
    mock: bool,
) -> None:
    """supac: keep system, Flatpak and Cargo packages in line with packages.yml."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["config_dir"] = Path(config_dir) if config_dir else None
    ctx.obj["mock"] = mock

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug, verbose, quiet, os.environ),
        log_file=os.environ.get(FILE_ENV),
        log_file_level=os.environ.get(FILE_LEVEL_ENV),
    )


# ── Helpers ─────────────────────────────────────────────────────


def _fail_config(err: Exception) -> None:
    from supac.core.errors import ConfigInvalid

    click.secho("❌ Invalid configuration:", fg="red", bold=True, err=True)
    problems = err.problems if isinstance(err, ConfigInvalid) else [str(err)]
    for problem in problems:
        click.echo(f"   • {problem}", err=True)
    sys.exit(EXIT_CONFIG_INVALID)


def _load(ctx: click.Context, with_packages: bool = True):
    """Load settings and (optionally) the desired state; exit 2 when invalid."""
    from supac.core.config.loader import (
        PACKAGES_FILE,
        SETTINGS_FILE,
        get_config_dir,
        load_desired_state,
        load_settings,
    )
    from supac.core.errors import ConfigInvalid

    desired = None
    try:
        config_dir = ctx.obj.get("config_dir") or get_config_dir()
        settings = load_settings(config_dir / SETTINGS_FILE)
        if with_packages:
            desired = load_desired_state(config_dir / PACKAGES_FILE)
    except ConfigInvalid as e:
        _fail_config(e)
    return settings, desired


def _build_registry(settings, mock: bool):
    """Adapters and hook runner for this run."""
    from supac.adapters import AdapterRegistry, MockBackendAdapter, MockHookRunner, ShellHookRunner
    from supac.core.models.backend import Backend

    if mock:
        registry = AdapterRegistry([MockBackendAdapter(b) for b in Backend])
        return registry, MockHookRunner()

    from supac.adapters.packages import CargoAdapter, FlatpakAdapter, PacmanAdapter

    try:
        system = PacmanAdapter(frontend=settings.arch_package_manager)
    except ValueError as e:
        _fail_config(e)
    registry = AdapterRegistry([
        system,
        FlatpakAdapter(default_systemwide=settings.flatpak_default_systemwide),
        CargoAdapter(use_binstall=settings.cargo_use_binstall),
    ])
    return registry, ShellHookRunner()


def _show_plan(plan) -> None:
    if not plan.backend_plans:
        click.secho("   ✅ Nothing to do, everything is in place", fg="green")
        return
    for bp in plan.backend_plans:
        click.secho(f"   {bp.backend.value}", fg="white", bold=True)
        for action in bp.actions:
            click.echo(f"     • {action.label}")


def _show_report(ctx: click.Context, report) -> None:
    verbose = ctx.obj.get("verbose", False)
    for backend, backend_report in report.backends.items():
        click.secho(f"   {backend.value}", fg="white", bold=True)
        if backend_report.error is not None:
            click.secho(f"     ✗ backend skipped: {backend_report.error}", fg="red")
        for outcome in backend_report.outcomes:
            label = outcome.package if outcome.kind != "run_hook" else f"{outcome.package} (hook)"
            if outcome.ok:
                click.secho(f"     ✓ {label}", fg="green", nl=False)
                click.echo(f" ({outcome.duration_ms}ms)" if outcome.duration_ms else "")
            elif outcome.failed:
                click.secho(f"     ✗ {label}", fg="red")
                if outcome.error is not None:
                    for line in outcome.error.message.split("\n")[:5]:
                        click.echo(f"       │ {line}")
                    if verbose and outcome.error.stderr:
                        for line in outcome.error.stderr.strip().split("\n")[:10]:
                            click.echo(f"       │ {line}")
            elif outcome.reason != "already_present" or verbose:
                click.secho(f"     ⊘ {label} ", fg="yellow", nl=False)
                click.echo(f"({outcome.reason})")

    click.echo()
    status_color = {"ok": "green", "partial": "yellow", "failed": "red"}.get(
        report.status, "yellow"
    )
    click.secho(f"   Status: {report.status}", fg=status_color, bold=True, nl=False)
    click.echo(
        f" | ✓ {report.succeeded} succeeded | ✗ {report.failed} failed"
        f" | ⊘ {report.skipped} skipped"
    )


# ── Commands ────────────────────────────────────────────────────


@cli.command()
@click.option("--dry-run", "-n", is_flag=True, help="Plan but don't execute.")
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation.")
@click.option("--strict-hooks", is_flag=True, help="Stop running hooks after one fails.")
@click.option("--jobs", "-j", type=click.IntRange(min=1), default=None, help="Max backends run at once.")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), default=None, help="Per-operation timeout in seconds.")
@click.option("--strict-skips", is_flag=True, help="Exit non-zero when actions were skipped for lack of permission.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def sync(
    ctx: click.Context,
    dry_run: bool,
    yes: bool,
    strict_hooks: bool,
    jobs: int | None,
    timeout: float | None,
    strict_skips: bool,
    as_json: bool,
) -> None:
    """Install everything declared in packages.yml that is missing.

    Examples:

        supac sync

        supac sync --dry-run

        supac sync -y --jobs 1 --strict-hooks
    """
    from supac.core.errors import ConfigInvalid
    from supac.core.use_cases.reconcile import apply, preview

    settings, desired = _load(ctx)
    registry, hook_runner = _build_registry(settings, ctx.obj.get("mock", False))
    options = settings.reconcile_options(
        strict_hooks=strict_hooks or None,
        concurrency_limit=jobs,
        per_op_timeout=timeout,
        dry_run=dry_run,
    )

    try:
        result = preview(desired, registry, options)
    except ConfigInvalid as e:
        _fail_config(e)
    except KeyboardInterrupt:
        click.secho("\n⊘ Cancelled", fg="yellow", err=True)
        sys.exit(EXIT_CANCELLED)

    quiet = ctx.obj.get("quiet", False)
    if not as_json and not quiet:
        mode_label = "[dry-run] " if dry_run else "[mock] " if ctx.obj.get("mock") else ""
        click.secho(f"\n📦 {mode_label}sync {result.plan.operation_id}", fg="cyan", bold=True)
        _show_plan(result.plan)
        click.echo()

    needs_confirm = result.plan.total_actions and not (yes or dry_run or as_json)
    if needs_confirm and not click.confirm("Proceed?", default=True):
        click.secho("⊘ Aborted", fg="yellow")
        return

    cancel_event = threading.Event()
    report = apply(desired, result, registry, hook_runner, options, cancel_event)

    if as_json:
        click.echo(json.dumps(report.to_dict(), indent=2))
    elif not report.is_empty:
        _show_report(ctx, report)
        click.echo()

    if report.cancelled:
        sys.exit(EXIT_CANCELLED)
    code = report.exit_code(permission_skips_are_errors=strict_skips)
    if code:
        sys.exit(code)


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def plan(ctx: click.Context, as_json: bool) -> None:
    """Show what sync would do, without doing it."""
    from supac.core.errors import ConfigInvalid
    from supac.core.use_cases.reconcile import preview

    settings, desired = _load(ctx)
    registry, _ = _build_registry(settings, ctx.obj.get("mock", False))

    try:
        result = preview(desired, registry, settings.reconcile_options())
    except ConfigInvalid as e:
        _fail_config(e)

    if as_json:
        data = result.plan.to_dict()
        data["errors"] = {
            b.value: info.model_dump(mode="json") for b, info in result.installed.errors.items()
        }
        click.echo(json.dumps(data, indent=2))
        return

    click.secho(f"\n📋 Plan {result.plan.operation_id}", fg="cyan", bold=True)
    for backend, info in result.installed.errors.items():
        click.secho(f"   ✗ {backend.value}: {info}", fg="red")
    _show_plan(result.plan)
    click.echo()


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def validate(ctx: click.Context, as_json: bool) -> None:
    """Validate packages.yml and check backend availability."""
    from supac.core.use_cases.maintenance import validate_config

    settings, desired = _load(ctx)
    registry, _ = _build_registry(settings, ctx.obj.get("mock", False))
    result = validate_config(desired, registry)

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.ok else EXIT_CONFIG_INVALID)

    if result.problems:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for problem in result.problems:
            click.echo(f"   • {problem}")
    else:
        click.secho("✅ Configuration is valid", fg="green", bold=True)

    for name, status in result.backends.items():
        marker = "✓" if status["available"] else "✗"
        color = "green" if status["available"] else "yellow"
        click.secho(f"   {marker} {name}", fg=color, nl=False)
        click.echo(f"  {status['type']}, {status['declared']} declared")

    for backend in result.missing_adapters:
        click.secho(f"   ✗ {backend.value}: no adapter registered", fg="red")

    click.echo()
    if not result.ok:
        sys.exit(EXIT_CONFIG_INVALID)


@cli.command("clean-cache")
@click.option("--dry-run", "-n", is_flag=True, help="Show what would be cleaned.")
@click.pass_context
def clean_cache(ctx: click.Context, dry_run: bool) -> None:
    """Clean the package caches of every available backend."""
    from supac.core.use_cases.maintenance import clean_caches

    settings, _ = _load(ctx, with_packages=False)
    registry, _ = _build_registry(settings, ctx.obj.get("mock", False))
    result = clean_caches(registry, dry_run=dry_run, timeout=settings.per_op_timeout)

    for backend in result.cleaned:
        click.secho(f"   ✓ {backend.value}", fg="green")
    for backend in result.skipped:
        click.secho(f"   ⊘ {backend.value}", fg="yellow")
    for backend, info in result.errors.items():
        click.secho(f"   ✗ {backend.value}: {info}", fg="red")

    if not result.ok:
        sys.exit(1)


if __name__ == "__main__":
    cli()
