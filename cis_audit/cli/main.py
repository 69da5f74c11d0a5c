"""Main CLI Module - Command-line interface for CIS Audit."""

import logging
import os
import sys
from typing import Any, Dict, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from .. import __version__
from ..checks.catalog import build_catalog
from ..core.auditor import Auditor
from ..core.check import CheckSpec
from ..core.config import ENVIRONMENT_VARIABLES, SUPPORTED_FORMATS, AuditSettings, load_settings
from ..core.exceptions import AuditError, ConfigError, InfrastructureError
from ..core.host import HostProbe
from ..core.progress import ProgressSnapshot
from ..core.registry import CheckRegistry
from ..core.scorer import Scorer
from ..reporters.base_reporter import ReportData
from ..reporters.pdf_reporter import REPORTLAB_AVAILABLE
from ..reporters.report_generator import ReportGenerator
from ..reporters.terminal_reporter import TerminalReporter

console = Console()
logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(levelname)s] %(asctime)s %(name)s: %(message)s"
NICE_INCREMENT = 5

EXIT_COMPLIANT = 0
EXIT_ERROR = 1
EXIT_BELOW_THRESHOLD = 2


def configure_logging(verbose: bool = False, trace: bool = False) -> None:
    """Send log records to stderr; DEBUG in verbose or trace mode, WARNING otherwise."""
    level = logging.DEBUG if (verbose or trace) else logging.WARNING
    logging.basicConfig(stream=sys.stderr, level=level, format=LOG_FORMAT, force=True)


def lower_priority(increment: int = NICE_INCREMENT) -> None:
    """Lower the CPU scheduling priority of this process."""
    try:
        os.nice(increment)
    except OSError as e:
        logger.warning("Could not lower process priority: %s", e)


def _join_ids(values: Tuple[str, ...]) -> Optional[str]:
    """Merge repeated --include/--exclude values; None when none were given."""
    return " ".join(values) if values else None


def _resolve_settings(
    levels: Tuple[int, ...],
    include: Tuple[str, ...],
    exclude: Tuple[str, ...],
    config_path: Optional[str],
    **overrides: Any,
) -> AuditSettings:
    values: Dict[str, Any] = dict(overrides)
    values["level"] = list(levels) if levels else None
    values["include"] = _join_ids(include)
    values["exclude"] = _join_ids(exclude)
    return load_settings(values, config_path=config_path)


def _catalog(ctx: click.Context) -> CheckRegistry:
    catalog = ctx.obj.get("catalog")
    if catalog is None:
        catalog = build_catalog()
        ctx.obj["catalog"] = catalog
    return catalog


def filter_options(func):
    """Options shared by every command that selects catalog entries."""
    options = [
        click.option("--level", "-l", "levels", multiple=True, type=click.IntRange(1, 2),
                     help="Benchmark level to run (repeatable; both or none means all)"),
        click.option("--include", "-i", multiple=True,
                     help="Ids to include, separated by spaces or commas (repeatable)"),
        click.option("--exclude", "-e", multiple=True,
                     help="Ids to exclude, separated by spaces or commas (repeatable)"),
        click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False),
                     help="YAML config file"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


class AuditGroup(click.Group):
    """Command group that reports usage errors with exit code 1.

    Exit code 2 is reserved for a completed run below the threshold.
    """

    def main(self, *args, **kwargs):
        if not kwargs.pop("standalone_mode", True):
            return super().main(*args, standalone_mode=False, **kwargs)
        try:
            return super().main(*args, standalone_mode=False, **kwargs)
        except click.ClickException as e:
            e.show()
            sys.exit(EXIT_ERROR)
        except click.Abort:
            click.echo("Aborted!", err=True)
            sys.exit(EXIT_ERROR)


@click.group(cls=AuditGroup)
@click.version_option(version=__version__, prog_name="cis-audit")
@click.pass_context
def cli(ctx: click.Context):
    """CIS Audit - Audit this host against the CIS Ubuntu 18.04 Benchmark."""
    ctx.ensure_object(dict)


@cli.command("run")
@filter_options
@click.option("--max-concurrency", "-c", type=int, help="Maximum checks running at once (default: 10)")
@click.option("--verbose", "-v", is_flag=True, help="Run checks one at a time with debug logging")
@click.option("--trace", is_flag=True, help="Like --verbose, and log every host command")
@click.option("--nice/--no-nice", default=True, help="Lower CPU priority while auditing (default: on)")
@click.option("--no-colour", "--no-color", "no_colour", is_flag=True, help="Disable coloured output")
@click.option("--no-progress", is_flag=True, help="Do not show the progress line")
@click.option("--format", "-f", "formats", multiple=True, type=click.Choice(SUPPORTED_FORMATS),
              help="Report files to write (repeatable)")
@click.option("--output", "-o", type=click.Path(file_okay=False), help="Output directory for reports")
@click.option("--threshold", type=float, help="Compliance score required for exit code 0 (default: 70)")
@click.option("--check-timeout", type=float, help="Seconds before a running check is recorded as Error")
@click.option("--block-on-error/--allow-errors", default=None,
              help="Fail the run when any check reports Error (default: allow)")
@click.pass_context
def run(
    ctx: click.Context,
    levels: Tuple[int, ...],
    include: Tuple[str, ...],
    exclude: Tuple[str, ...],
    config_path: Optional[str],
    max_concurrency: Optional[int],
    verbose: bool,
    trace: bool,
    nice: bool,
    no_colour: bool,
    no_progress: bool,
    formats: Tuple[str, ...],
    output: Optional[str],
    threshold: Optional[float],
    check_timeout: Optional[float],
    block_on_error: Optional[bool],
):
    """Run the benchmark against this host.

    Exit codes: 0 compliant, 1 usage or runtime error, 2 below threshold.
    """
    out = Console(no_color=no_colour)
    err = Console(stderr=True, no_color=no_colour)

    try:
        settings = _resolve_settings(
            levels, include, exclude, config_path,
            max_concurrency=max_concurrency,
            verbose=verbose or None,
            trace=trace or None,
            formats=list(formats) or None,
            output=output,
            threshold=threshold,
            check_timeout=check_timeout,
            block_on_error=block_on_error,
        )
    except ConfigError as e:
        err.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(EXIT_ERROR)

    request = settings.request
    configure_logging(request.verbose, request.trace)
    if nice:
        lower_priority()

    catalog = _catalog(ctx)
    scorer = Scorer(settings.threshold, block_on_error=settings.block_on_error)
    auditor = Auditor(catalog, host=ctx.obj.get("host"), scorer=scorer)
    show_progress = not no_progress and not request.serial

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TimeElapsedColumn(),
            console=err,
            transient=True,
            disable=not show_progress,
        ) as progress:
            task = progress.add_task("Starting...", total=None)

            def update_progress(snapshot: ProgressSnapshot):
                progress.update(
                    task,
                    completed=snapshot.finished,
                    total=snapshot.started or None,
                    description=f"{snapshot.finished} of {snapshot.started} tests completed",
                )

            report = auditor.run_sync(request, update_progress if show_progress else None)
    except InfrastructureError as e:
        err.print(f"[red]Audit aborted: {e}[/red]")
        sys.exit(EXIT_ERROR)

    report_data = ReportData.from_report(report)
    TerminalReporter(console=out).render(report_data)

    if settings.formats:
        try:
            paths = ReportGenerator(settings.output_dir).generate_reports(report, settings.formats)
        except (ValueError, OSError) as e:
            err.print(f"[red]Could not write reports: {e}[/red]")
            sys.exit(EXIT_ERROR)
        out.print("[bold]Reports Generated:[/bold]")
        for fmt, path in paths.items():
            out.print(f"  {fmt.upper()}: [cyan]{path}[/cyan]")

    sys.exit(EXIT_COMPLIANT if report.summary.is_compliant else EXIT_BELOW_THRESHOLD)


@cli.command("list")
@filter_options
@click.pass_context
def list_checks(
    ctx: click.Context,
    levels: Tuple[int, ...],
    include: Tuple[str, ...],
    exclude: Tuple[str, ...],
    config_path: Optional[str],
):
    """List the catalog entries a run with these options would execute."""
    try:
        settings = _resolve_settings(levels, include, exclude, config_path)
    except ConfigError as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        sys.exit(EXIT_ERROR)

    catalog = _catalog(ctx)
    selected = catalog.select(settings.request)

    table = Table(title=f"{catalog.benchmark} Catalog")
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Description")
    table.add_column("Scoring", no_wrap=True)
    table.add_column("Level", justify="right")
    table.add_column("Procedure", style="dim")

    check_count = 0
    for entry in selected:
        if isinstance(entry, CheckSpec):
            check_count += 1
            table.add_row(
                entry.id,
                entry.description,
                entry.scoring_class.value,
                str(entry.level),
                type(entry.procedure).__name__,
            )
        else:
            table.add_row(entry.id, entry.title, "", "", "", style="bold")

    console.print(table)
    console.print(f"\n{check_count} of {len(catalog.checks())} checks selected")


@cli.command("check-tools")
@click.pass_context
def check_tools(ctx: click.Context):
    """Check availability of the host tools the checks rely on."""
    console.print(Panel.fit(
        "[bold]Tool Availability Check[/bold]",
        border_style="blue"
    ))

    catalog = _catalog(ctx)
    host = ctx.obj.get("host") or HostProbe()

    users: Dict[str, list] = {}
    for spec in catalog.checks():
        for tool in spec.procedure.tools:
            users.setdefault(tool, []).append(spec.id)

    table = Table()
    table.add_column("Tool", style="cyan")
    table.add_column("Status")
    table.add_column("Used by")

    missing = 0
    for tool in sorted(users):
        location = host.which(tool)
        if location:
            status = f"[green]✓ Available[/green] [dim]{location}[/dim]"
        else:
            status = "[red]✗ Not Found[/red]"
            missing += 1
        ids = users[tool]
        used_by = ", ".join(ids[:6]) + (f" (+{len(ids) - 6} more)" if len(ids) > 6 else "")
        table.add_row(tool, status, used_by)

    console.print(table)
    if missing:
        console.print(f"\n[yellow]{missing} tools missing; checks using them will Fail or Error.[/yellow]")

    console.print("\n[bold]Optional Dependencies:[/bold]")
    if REPORTLAB_AVAILABLE:
        console.print("  PDF Generation (ReportLab): [green]✓ Available[/green]")
    else:
        console.print("  PDF Generation (ReportLab): [yellow]✗ Not installed[/yellow] - pip install reportlab")


@cli.command("config")
def config():
    """Show configuration and environment variables."""
    console.print(Panel.fit(
        "[bold]Configuration Guide[/bold]",
        border_style="blue"
    ))

    console.print("\n[bold]Environment Variables:[/bold]\n")

    table = Table()
    table.add_column("Variable", style="cyan")
    table.add_column("Description")
    table.add_column("Status")

    for var_name, (_, description) in ENVIRONMENT_VARIABLES.items():
        value = os.getenv(var_name)
        status = f"[green]{value}[/green]" if value else "[yellow]Not set[/yellow]"
        table.add_row(var_name, description, status)

    console.print(table)

    console.print("\n[bold]Precedence:[/bold] command-line options, then environment "
                  "variables (a .env file is loaded), then --config YAML, then defaults.\n")
    console.print("  [cyan]Example:[/cyan]")
    console.print("    export CIS_AUDIT_LEVEL=1")
    console.print("    cis-audit run --exclude 1.1.1 --format json --output /var/tmp/cis\n")


def main():
    """Entry point for the CLI."""
    try:
        cli(obj={})
    except AuditError as e:
        console.print(f"[red]Error: {e}[/red]")
        sys.exit(EXIT_ERROR)


if __name__ == "__main__":
    main()
