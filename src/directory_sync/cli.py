"""Command-line interface for the Directory Sync tool."""

import asyncio
import json
from pathlib import Path
from typing import Any

import structlog
import typer
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.panel import Panel

from . import __version__
from .api.client import DirectoryClient
from .config import DirectoryConfig, SyncConfig, load_config
from .constants import (
    DEFAULT_CASE_TYPE_ID,
    DEFAULT_LOOKBACK_DAYS,
    DEFAULT_PAGE_SIZE,
    DEFAULT_VISIBILITY,
)
from .dependency.graph import HierarchyGraph
from .dependency.orderer import DependencyOrderer
from .execution.failures import analyze_failures
from .execution.monitor import TransactionMonitor
from .models.responses import TransactionState, TransactionStatus
from .observability.logger import LogContext, configure_logging, timed
from .observability.reporter import (
    render_failure_analysis,
    render_form_feed,
    render_job,
    render_messages,
    render_ordering,
    render_retry_strategies,
    render_sync_result,
    render_transaction_history,
    render_transaction_status,
)
from .reporting.form_entries import FormEntryReporter
from .utils.exceptions import (
    AUTH_ERROR,
    NETWORK_ERROR,
    PERMISSION_ERROR,
    VALIDATION_ERROR,
    CyclicDependencyError,
    DirectoryAPIError,
    DirectoryPermissionError,
    DirectorySyncError,
    ValidationError,
)
from .validation.validator import (
    validate_auth_config,
    validate_department_hierarchy,
    validate_sync_data,
)

app = typer.Typer(
    name="directory-sync",
    help="Directory Sync - synchronise departments and users with the Directory API",
    add_completion=False,
)

console = Console()
logger = structlog.get_logger(__name__)

TROUBLESHOOTING: dict[str, tuple[str, ...]] = {
    AUTH_ERROR: (
        "Verify your API token is correct and not expired",
        "Check that the tenant ID matches your organization",
        "Ensure the user account associated with the token is active",
    ),
    PERMISSION_ERROR: (
        "The token's user needs the PROVISIONING_SEARCH and PROVISIONING_UPDATE roles",
        "Contact your administrator to assign the missing role",
    ),
    NETWORK_ERROR: (
        "Check your internet connection",
        "Verify QMPLUS_BASE_URL is correct (it must include /api)",
        "Check if there are any firewall restrictions",
    ),
    VALIDATION_ERROR: (
        "Run 'directory-sync validate <data_file>' to check the payload offline",
        "Check field names and required fields in the data file",
    ),
}

GENERAL_TROUBLESHOOTING: tuple[str, ...] = (
    "Check the logs for more detailed error information",
    "Contact your Directory administrator for assistance",
)


class _State:
    """Global options shared by every command."""

    config_file: Path | None = None
    log_level: str | None = None
    json_logs: bool = False
    config: SyncConfig | None = None


state = _State()


@app.callback()
def main(
    config_file: Path | None = typer.Option(None, "--config", "-c", help="YAML configuration file"),
    log_level: str | None = typer.Option(
        None, "--log-level", help="Log level: TRACE, DEBUG, VERBOSE, INFO, WARNING, ERROR"
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON"),
) -> None:
    """Load .env and remember global options."""
    load_dotenv()
    state.config_file = config_file
    state.log_level = log_level
    state.json_logs = json_logs
    state.config = None


def get_config() -> SyncConfig:
    """Load configuration once and configure logging from it."""
    if state.config is None:
        try:
            config = load_config(state.config_file)
        except (FileNotFoundError, ValueError) as e:
            console.print(f"\n[bold red]ERROR:[/bold red] {e}")
            raise typer.Exit(code=1) from e

        configure_logging(
            level=state.log_level or config.logging.level,
            json_logs=state.json_logs or config.logging.format == "json",
            log_file=config.logging.file,
            error_log_file=config.logging.error_file,
            max_bytes=config.logging.max_bytes,
            backup_count=config.logging.backup_count,
        )
        state.config = config
    return state.config


def get_directory_config() -> DirectoryConfig:
    config = get_config()
    if config.directory is None:
        console.print("\n[bold red]ERROR:[/bold red] Directory API configuration required")
        console.print("(Set QMPLUS_BASE_URL/QMPLUS_TENANT_ID/QMPLUS_API_TOKEN or provide --config)")
        raise typer.Exit(code=1)
    return config.directory


def load_data_file(data_file: Path) -> dict[str, Any]:
    """Load a sync batch from a JSON or YAML file."""
    try:
        with open(data_file, encoding="utf-8") as f:
            if data_file.suffix.lower() in (".yml", ".yaml"):
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValidationError(f"Could not parse {data_file}: {e}") from e

    if not isinstance(data, dict):
        raise ValidationError(
            f"Invalid data file structure in {data_file}: expected an object, "
            f"got {type(data).__name__}"
        )
    return data


def print_troubleshooting(error: Exception) -> None:
    code = getattr(error, "code", None)
    hints = TROUBLESHOOTING.get(code, GENERAL_TROUBLESHOOTING) if code else GENERAL_TROUBLESHOOTING
    console.print("\n[bold]Troubleshooting:[/bold]")
    for hint in hints:
        console.print(f"  - {hint}")


def run_command(coro: Any) -> Any:
    """Run an async command body, turning tool errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except typer.Exit:
        raise
    except DirectorySyncError as e:
        console.print(f"\n[bold red]ERROR:[/bold red] {e}")
        if isinstance(e, ValidationError):
            render_messages(console, "Errors", e.errors, "red")
        else:
            print_troubleshooting(e)
        raise typer.Exit(code=1) from e


def check_data(data: dict[str, Any], strict: bool = False, allow_cycles: bool = False) -> None:
    """
    Validate a sync batch offline and print the findings.

    With ``allow_cycles`` a cycle is only reported as a warning: the departments
    involved are still sent, after everything that could be ordered.

    Raises:
        ValidationError: If any record is invalid
        CyclicDependencyError: If departments form a cycle and cycles are not allowed
    """
    result = validate_sync_data(data)
    if not result.valid:
        raise ValidationError(
            f"Data validation failed with {result.error_count} errors", errors=result.messages()
        )

    departments = data.get("departments") or []
    hierarchy = validate_department_hierarchy(departments)
    render_messages(console, "Warnings", hierarchy.warnings, "yellow")
    if allow_cycles:
        render_messages(console, "Cycles (sent last)", hierarchy.errors, "yellow")
    elif not hierarchy.valid:
        raise CyclicDependencyError(
            "Department hierarchy contains circular dependencies: " + "; ".join(hierarchy.errors),
            cycles=hierarchy.cycles,
        )
    if strict and hierarchy.warnings:
        raise ValidationError("Validation failed (strict mode)", errors=hierarchy.warnings)


@app.command("validate-auth")
def validate_auth() -> None:
    """
    Validate API credentials and permissions.

    Checks configuration, authentication, the PROVISIONING_SEARCH and
    PROVISIONING_UPDATE roles, and read access to departments and users.
    """
    config = get_config()
    console.print("\n[bold blue]Directory Authentication Validation[/bold blue]\n")

    errors = validate_auth_config(config.directory or {})
    if errors:
        render_messages(console, "Configuration errors", errors, "red")
        console.print("\nPlease check your .env file and ensure all required variables are set.")
        raise typer.Exit(code=1)

    directory = get_directory_config()
    console.print("[green]OK:[/green] Configuration looks good")
    console.print(f"  Base URL: {directory.base_url}")
    console.print(f"  Tenant ID: {directory.tenant_id}")
    console.print(f"  API Token: {directory.masked_token}")

    async def run_validate_auth() -> None:
        async with DirectoryClient(directory) as client:
            console.print("\n[cyan]Testing API connection...[/cyan]")
            if not await client.validate_auth():
                console.print("[red]FAILED: Authentication failed[/red]")
                console.print("  - Check your API token and tenant ID")
                console.print("  - Ensure the user has required roles")
                raise typer.Exit(code=1)
            console.print("[green]OK:[/green] Authentication successful")

            console.print("\n[cyan]Testing permissions...[/cyan]")
            try:
                transactions = await client.list_transactions(page_size=1)
                console.print("[green]OK:[/green] PROVISIONING_SEARCH permission confirmed")
                console.print(f"  Found {transactions.total_count} total transactions")
            except DirectoryPermissionError:
                console.print("[red]Missing PROVISIONING_SEARCH permission[/red]")

            try:
                checkpoint = await client.create_checkpoint()
                console.print("[green]OK:[/green] PROVISIONING_UPDATE permission confirmed")
                console.print(
                    f"  Created test checkpoint: {checkpoint.transaction_id} (will auto-expire)"
                )
            except DirectoryPermissionError:
                console.print("[red]Missing PROVISIONING_UPDATE permission[/red]")

            console.print("\n[cyan]Testing data access...[/cyan]")
            try:
                departments = await client.get_departments(active=True)
                console.print(
                    f"[green]OK:[/green] Can access departments ({len(departments.entries)} active)"
                )
                users = await client.get_users(active=True)
                console.print(f"[green]OK:[/green] Can access users ({len(users.entries)} active)")
            except DirectoryAPIError as e:
                console.print(f"[yellow]WARNING: Data access limited:[/yellow] {e}")

        console.print("\n[green]SUCCESS: Validation completed.[/green]")
        console.print("  Your integration is ready to use.")

    run_command(run_validate_auth())


@app.command()
def validate(
    data_file: Path = typer.Argument(..., help="JSON or YAML sync data file", exists=True),
    strict: bool = typer.Option(False, "--strict", help="Fail on warnings"),
) -> None:
    """
    Validate a sync data file offline.

    Checks every department and user record and the department hierarchy
    (cycles are errors, parents missing from the file are warnings).
    """
    get_config()
    console.print(f"\n[bold blue]Validating:[/bold blue] {data_file}\n")

    async def run_validate() -> None:
        data = load_data_file(data_file)
        check_data(data, strict=strict)
        console.print("[green]PASS: Validation successful![/green]")
        console.print(f"  Departments: {len(data.get('departments') or [])}")
        console.print(f"  Users: {len(data.get('users') or [])}")

    run_command(run_validate())


@app.command()
def order(
    data_file: Path = typer.Argument(..., help="JSON or YAML sync data file", exists=True),
) -> None:
    """Show the order departments will be created in, with cycle diagnostics."""
    get_config()

    async def run_order() -> None:
        data = load_data_file(data_file)
        departments = data.get("departments") or []
        if not isinstance(departments, list):
            raise ValidationError("departments must be an array")
        result = DependencyOrderer().order_with_report(departments)
        render_ordering(console, result, HierarchyGraph.from_items(departments))
        if result.has_unresolved:
            console.print(
                f"\n[yellow]WARNING: {len(result.unresolved)} departments could not be "
                "placed after their parent[/yellow]"
            )

    run_command(run_order())


async def _watch(client: DirectoryClient, transaction_id: str) -> TransactionStatus:
    config = get_config()
    monitor = TransactionMonitor(
        client,
        poll_interval=config.monitor.poll_interval,
        max_attempts=config.monitor.max_attempts,
    )

    def on_progress(status: TransactionStatus) -> None:
        console.print(f"  Status: {status.transaction_status} ({status.progress})")

    with LogContext(transaction_id=transaction_id):
        return await monitor.wait(transaction_id, on_progress=on_progress)


def _report_final_status(status: TransactionStatus) -> None:
    render_transaction_status(console, status)
    if status.failures or status.failed_operations:
        render_failure_analysis(console, analyze_failures(status))
    if status.state is TransactionState.FAILED:
        console.print("\n[red]ERROR: Transaction failed[/red]")
        raise typer.Exit(code=1)


@app.command()
def sync(
    data_file: Path = typer.Argument(..., help="JSON or YAML sync data file", exists=True),
    monitor: bool = typer.Option(False, "--monitor", help="Poll until the transaction finishes"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate and show the plan only"),
) -> None:
    """
    Synchronise departments and users in one transaction.

    Examples:
        directory-sync sync samples/sample_sync.json
        directory-sync sync samples/sample_sync.json --monitor
    """
    get_config()
    console.print(
        Panel.fit(
            f"[bold blue]Directory Full Sync[/bold blue]\n\n"
            f"Data File: {data_file}\n"
            f"Mode: [yellow]{'DRY RUN' if dry_run else 'EXECUTE'}[/yellow]\n"
            f"Monitor: [green]{'Enabled' if monitor else 'Disabled'}[/green]",
            border_style="blue",
        )
    )

    async def run_sync() -> None:
        data = load_data_file(data_file)
        check_data(data, allow_cycles=True)

        if dry_run:
            departments = data.get("departments") or []
            result = DependencyOrderer().order_with_report(departments)
            render_ordering(console, result, HierarchyGraph.from_items(departments))
            console.print(
                f"\n[yellow]DRY RUN: would queue {len(departments)} departments and "
                f"{len(data.get('users') or [])} users[/yellow]"
            )
            return

        async with DirectoryClient(get_directory_config()) as client:
            with timed("Full sync"):
                result = await client.full_sync(data)
            render_sync_result(console, result)

            if monitor and result.transaction_id:
                console.print("\n[cyan]Monitoring transaction progress...[/cyan]")
                _report_final_status(await _watch(client, result.transaction_id))
            elif result.failed_operations:
                console.print("\n[yellow]Synchronization completed with some failures[/yellow]")
            else:
                console.print("\n[green]SUCCESS: Full synchronization completed[/green]")

    run_command(run_sync())


@app.command("bulk-import")
def bulk_import(
    data_file: Path = typer.Argument(..., help="JSON or YAML file with a users list", exists=True),
    batch_size: int | None = typer.Option(
        None, "--batch-size", min=1, help="Users per request (default from config)"
    ),
) -> None:
    """Import a large user list in batches within one transaction."""
    get_config()

    async def run_bulk_import() -> None:
        data = load_data_file(data_file)
        users = data.get("users") or []
        check_data({"users": users})

        async with DirectoryClient(get_directory_config()) as client:
            result = await client.bulk_user_import(users, batch_size=batch_size)
        render_sync_result(console, result, title="Bulk Import Result")

    run_command(run_bulk_import())


@app.command("org-setup")
def org_setup(
    data_file: Path = typer.Argument(
        ..., help="JSON or YAML file with a departments list", exists=True
    ),
) -> None:
    """Create a department hierarchy directly (no transaction), parents first."""
    get_config()

    async def run_org_setup() -> None:
        data = load_data_file(data_file)
        departments = data.get("departments") or []
        check_data({"departments": departments}, allow_cycles=True)

        async with DirectoryClient(get_directory_config()) as client:
            result = await client.organization_setup(departments)
        console.print(f"[green]Processed {result.processed} departments[/green]")
        render_messages(console, "Errors", [str(error) for error in result.errors], "red")

    run_command(run_org_setup())


@app.command()
def transactions(
    status: str | None = typer.Option(None, "--status", help="Filter by status"),
    created_by: str | None = typer.Option(None, "--created-by", help="Filter by creator"),
    page: int = typer.Option(0, "--page", min=0, help="Zero-based page"),
    page_size: int = typer.Option(DEFAULT_PAGE_SIZE, "--page-size", help="Transactions per page"),
) -> None:
    """List recent transactions."""
    directory = get_directory_config()

    async def run_transactions() -> None:
        async with DirectoryClient(directory) as client:
            history = await client.list_transactions(
                status=status, created_by=created_by, page=page, page_size=page_size
            )
        render_transaction_history(console, history)
        console.print("[dim]To see details: directory-sync status <transaction_id>[/dim]")

    run_command(run_transactions())


@app.command()
def status(transaction_id: str = typer.Argument(..., help="Transaction ID")) -> None:
    """Show progress for a transaction."""
    directory = get_directory_config()

    async def run_status() -> None:
        async with DirectoryClient(directory) as client:
            render_transaction_status(console, await client.get_transaction_status(transaction_id))

    run_command(run_status())


@app.command("monitor")
def monitor_transaction(transaction_id: str = typer.Argument(..., help="Transaction ID")) -> None:
    """Poll a transaction until it completes or fails."""
    directory = get_directory_config()

    async def run_monitor() -> None:
        async with DirectoryClient(directory) as client:
            _report_final_status(await _watch(client, transaction_id))

    run_command(run_monitor())


@app.command()
def failures(transaction_id: str = typer.Argument(..., help="Transaction ID")) -> None:
    """Analyse a transaction's failures and recommend fixes."""
    directory = get_directory_config()

    async def run_failures() -> None:
        async with DirectoryClient(directory) as client:
            analysis = analyze_failures(await client.get_transaction_status(transaction_id))
        render_failure_analysis(console, analysis)
        if not analysis.has_failures:
            console.print("\n[green]No failures recorded[/green]")

    run_command(run_failures())


@app.command()
def job(job_id: str = typer.Argument(..., help="Background job ID")) -> None:
    """Show a background job created by a commit."""
    directory = get_directory_config()

    async def run_job() -> None:
        async with DirectoryClient(directory) as client:
            render_job(console, await client.get_job(job_id))

    run_command(run_job())


@app.command("retry-strategies")
def retry_strategies() -> None:
    """Show the recommended reaction to each failure type."""
    render_retry_strategies(console)


@app.command("form-entries")
def form_entries(
    department_id: str = typer.Option(..., "--department-id", help="Root department id"),
    days: int = typer.Option(DEFAULT_LOOKBACK_DAYS, "--days", min=0, help="Look-back window"),
    case_type_id: str = typer.Option(DEFAULT_CASE_TYPE_ID, "--case-type-id", help="Case type"),
    visibility: str = typer.Option(
        DEFAULT_VISIBILITY, "--visibility", help="Department visibility"
    ),
    output: Path | None = typer.Option(None, "--output", "-o", help="Write the feed as JSON"),
) -> None:
    """Fetch recent form entries with their related entities."""
    directory = get_directory_config()

    async def run_form_entries() -> None:
        async with DirectoryClient(directory) as client:
            feed = await FormEntryReporter(client).build_feed(
                department_id, case_type_id=case_type_id, visibility=visibility, days=days
            )
        render_form_feed(console, feed)

        if output:
            output.parent.mkdir(parents=True, exist_ok=True)
            with open(output, "w", encoding="utf-8") as f:
                json.dump(feed.to_dict(), f, indent=2, default=str)
            console.print(f"[green]Feed written to {output}[/green]")

    run_command(run_form_entries())


@app.command()
def version() -> None:
    """Show version information and features."""
    console.print(
        Panel.fit(
            "[bold]Directory Sync[/bold]\n\n"
            f"Version: [cyan]{__version__}[/cyan]\n"
            "Python: 3.11+\n\n"
            "[bold]Core Features:[/bold]\n"
            "- Department and user synchronisation\n"
            "- Parent-first ordering that tolerates cycles\n"
            "- Offline payload and hierarchy validation\n"
            "- Transaction monitoring and failure analysis\n"
            "- Bulk user import in batches\n"
            "- Form entry feeds",
            title="About",
            border_style="blue",
        )
    )


if __name__ == "__main__":
    app()
