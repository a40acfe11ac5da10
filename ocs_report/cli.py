"""OCS report CLI: Typer app for running and inspecting reports."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
import traceback
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from ocs_report import __version__

console = Console(stderr=True)

app = typer.Typer(
    name="ocs-report",
    help=(
        "OCS usage report engine.\n\n"
        "Per-subscriber package, usage and cost rows for one account.\n"
        "Exit codes: 0=OK, 1=UPSTREAM/REPORT_ERROR, 2=CONFIG_ERROR."
    ),
    add_completion=False,
    no_args_is_help=True,
    epilog=(
        "Examples:\n"
        "  ocs-report report --account-id 3771 --format table\n"
        "  ocs-report accounts\n"
        "  ocs-report windows --start 2025-06-01\n"
        "  ocs-report raw listSubscriber --params '{\"accountId\": 3771}'"
    ),
)

TABLE_COLUMNS = (
    ("iccid", "ICCID"),
    ("prepaid_package_template_name", "Package"),
    ("package_activated_at", "Activated"),
    ("package_expires_at", "Expires"),
    ("pckdata_gb", "Pkg GB"),
    ("used_gb", "Used GB"),
    ("total_gb", "Total GB"),
    ("subscriber_one_time_cost", "Pkg cost"),
    ("total_subscriber_cost", "Sub cost"),
    ("total_reseller_cost", "Reseller cost"),
    ("subscriber_status", "Status"),
)


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=level,
        stream=sys.stderr,
    )


def _load_config(config_path: Optional[str], **overrides):
    from ocs_report.config import ReportConfig

    if config_path:
        return ReportConfig.from_yaml(config_path).merge_overrides(**overrides)
    return ReportConfig.from_env(**overrides)


def _run_safe(fn, verbose: bool = False) -> None:
    """Run a function with clean error handling."""
    from ocs_report.errors import ConfigError

    try:
        fn()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted.[/yellow]")
        raise SystemExit(130)
    except ConfigError as e:
        console.print(f"\n[red bold]Config error:[/red bold] {e}")
        raise SystemExit(2)
    except Exception as e:
        console.print(f"\n[red bold]Error:[/red bold] {e}")
        if verbose:
            console.print(traceback.format_exc())
        else:
            console.print("[dim]Run with --verbose for full traceback.[/dim]")
        raise SystemExit(1)


def _cell(value) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


@app.callback()
def main() -> None:
    """OCS usage report engine."""
    pass


# ── report ───────────────────────────────────────────────────────

@app.command()
def report(
    account_id: Optional[int] = typer.Option(None, "--account-id", "-a", help="Account to report on (default: OCS_ACCOUNT_ID)."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file (default: OCS_* env vars)."),
    pool_width: Optional[int] = typer.Option(None, "--pool-width", help="Subscribers enriched concurrently."),
    fmt: str = typer.Option("json", "--format", "-f", help="json | table"),
    verbose: bool = typer.Option(False, "--verbose", help="Enable DEBUG logging."),
) -> None:
    """Build the per-subscriber report for one account."""
    _setup_logging(verbose)
    _run_safe(lambda: _report_impl(account_id, config, pool_width, fmt), verbose=verbose)


def _report_impl(account_id, config_path, pool_width, fmt) -> None:
    from ocs_report.models import rows_to_flat
    from ocs_report.report import build_report

    if fmt not in ("json", "table"):
        raise typer.BadParameter("--format must be 'json' or 'table'")
    cfg = _load_config(config_path, pool_width=pool_width)
    rows = asyncio.run(build_report(account_id, cfg))

    if fmt == "json":
        typer.echo(json.dumps(rows_to_flat(rows), indent=2, default=str))
        return

    tbl = Table(show_lines=False)
    for _, header in TABLE_COLUMNS:
        tbl.add_column(header)
    for flat in rows_to_flat(rows):
        cells = [_cell(flat.get(key)) for key, _ in TABLE_COLUMNS]
        if flat["degraded"]:
            cells[0] = f"[yellow]{cells[0]}[/yellow]"
        tbl.add_row(*cells)
    Console().print(tbl)
    degraded = sum(1 for r in rows if r.degraded)
    console.print(f"{len(rows)} rows, {degraded} degraded")


# ── accounts ─────────────────────────────────────────────────────

@app.command()
def accounts(
    reseller_id: Optional[int] = typer.Option(None, "--reseller-id", help="Restrict to one reseller (default: OCS_RESELLER_ID)."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable DEBUG logging."),
) -> None:
    """List the accounts visible to the configured token."""
    _setup_logging(verbose)
    _run_safe(lambda: _accounts_impl(reseller_id, config), verbose=verbose)


def _accounts_impl(reseller_id, config_path) -> None:
    from ocs_report.report import list_accounts

    cfg = _load_config(config_path)
    found = asyncio.run(list_accounts(reseller_id, cfg))
    typer.echo(json.dumps([a.model_dump() for a in found], indent=2))


# ── windows ──────────────────────────────────────────────────────

@app.command()
def windows(
    start: str = typer.Option(..., "--start", help="First day (YYYY-MM-DD)."),
    end: Optional[str] = typer.Option(None, "--end", help="Last day (default: today)."),
    span: int = typer.Option(7, "--span", help="Maximum days per window."),
) -> None:
    """Show the usage windows an interval is split into (no upstream calls)."""
    _run_safe(lambda: _windows_impl(start, end, span))


def _windows_impl(start, end, span) -> None:
    from ocs_report.report import utc_today
    from ocs_report.windows import plan

    for w in plan(start, end or utc_today().isoformat(), span):
        typer.echo(f"{w.start.isoformat()}  {w.end.isoformat()}  ({w.days}d)")


# ── raw ──────────────────────────────────────────────────────────

@app.command()
def raw(
    operation: str = typer.Argument(..., help="OCS operation name, e.g. listSubscriber."),
    params: str = typer.Option("{}", "--params", "-p", help="Operation parameters as JSON."),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="YAML config file."),
    verbose: bool = typer.Option(False, "--verbose", help="Enable DEBUG logging."),
) -> None:
    """Send one operation to the OCS endpoint and print the reply."""
    _setup_logging(verbose)
    _run_safe(lambda: _raw_impl(operation, params, config), verbose=verbose)


def _raw_impl(operation, params, config_path) -> None:
    from ocs_report.gateway import OcsGateway

    try:
        body_params = json.loads(params)
    except ValueError as e:
        raise typer.BadParameter(f"--params is not valid JSON: {e}")
    cfg = _load_config(config_path)

    async def _call():
        async with OcsGateway.from_config(cfg) as gw:
            return await gw.call_body({operation: body_params})

    resp = asyncio.run(_call())
    typer.echo(json.dumps(resp.to_dict(), indent=2))


# ── version ──────────────────────────────────────────────────────

@app.command()
def version() -> None:
    """Show version and exit."""
    typer.echo(f"ocs-report {__version__}")
