"""Console rendering for sync results, transactions and failure analysis."""

from collections.abc import Iterable
from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..dependency.graph import HierarchyGraph
from ..dependency.orderer import OrderingResult, default_id_of, default_parent_of
from ..execution.failures import RETRY_STRATEGIES, FailureAnalysis
from ..models.responses import CommitResult, Job, TransactionList, TransactionStatus
from ..reporting.form_entries import FormEntryFeed


def rate_style(success_rate: float) -> str:
    """Colour for a success rate: green at 100%, yellow at 90%+, red below."""
    if success_rate >= 100:
        return "green"
    if success_rate >= 90:
        return "yellow"
    return "red"


def _rate(success_rate: float) -> str:
    style = rate_style(success_rate)
    return f"[{style}]{success_rate:.1f}%[/{style}]"


def render_sync_result(console: Console, result: CommitResult, title: str = "Sync Result") -> None:
    table = Table(title=title)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Transaction ID", result.transaction_id or "N/A")
    table.add_row("Job ID", str(result.job_id) if result.job_id is not None else "N/A")
    table.add_row("Total Operations", str(result.total_operations))
    table.add_row("Successful", str(result.successful_operations))
    table.add_row("Failed", str(result.failed_operations))
    table.add_row("Success Rate", _rate(result.success_rate))
    console.print(table)

    if result.errors:
        console.print(f"\n[red]Operation errors ({len(result.errors)}):[/red]")
        for error in result.errors:
            paths = f" ({', '.join(error.paths)})" if error.paths else ""
            console.print(f"  - {error.first_message}{paths}")


def render_transaction_status(console: Console, status: TransactionStatus) -> None:
    table = Table(title=f"Transaction {status.transaction_id or ''}".strip())
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Status", status.transaction_status or "UNKNOWN")
    table.add_row("Progress", f"{status.progress} operations")
    table.add_row("Failed", str(status.failed_operations))
    table.add_row("Success Rate", _rate(status.success_rate))
    if status.completed_on:
        table.add_row("Completed On", status.completed_on)
    console.print(table)


def render_transaction_history(console: Console, history: TransactionList) -> None:
    if not history.transactions:
        console.print("[yellow]No transactions found[/yellow]")
        return

    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("Transaction ID", style="cyan")
    table.add_column("Status")
    table.add_column("Created On")
    table.add_column("Created By")
    table.add_column("Operations", justify="right")
    table.add_column("Completed", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")

    for tx in history.transactions:
        table.add_row(
            tx.transaction_id,
            tx.status or "UNKNOWN",
            (tx.created_on or "")[:19],  # Trim milliseconds
            tx.created_by or "",
            str(tx.operation_count),
            str(tx.completed_count),
            str(tx.failed_count),
        )

    console.print(table)
    console.print(
        f"\n[dim]Showing {len(history.transactions)} of {history.total_count} transactions[/dim]"
    )


def render_failure_analysis(console: Console, analysis: FailureAnalysis) -> None:
    console.print(
        Panel.fit(
            f"Status: [cyan]{analysis.status or 'UNKNOWN'}[/cyan]\n"
            f"Total Operations: {analysis.total_operations}\n"
            f"Successful: [green]{analysis.completed_operations}[/green]\n"
            f"Failed: [red]{analysis.failed_operations}[/red]\n"
            f"Success Rate: {_rate(analysis.success_rate)}",
            title=f"Transaction {analysis.transaction_id or ''}".strip(),
            border_style="blue",
        )
    )

    if not analysis.groups:
        if analysis.failed_operations:
            console.print("[yellow]Failures reported without details[/yellow]")
        return

    table = Table(title="Failures")
    table.add_column("Operation", style="cyan")
    table.add_column("Type")
    table.add_column("Action")
    table.add_column("Entity")
    table.add_column("External ID")
    table.add_column("Error Type", style="red")
    table.add_column("Message")
    for group in analysis.groups:
        for failure in group.failures:
            table.add_row(
                str(failure.operation_id) if failure.operation_id is not None else "",
                failure.operation_type or "",
                failure.operation_action or "",
                failure.entity_name or "Unknown",
                failure.external_id or "N/A",
                group.error_type,
                failure.error_message or "",
            )
    console.print(table)

    console.print("\n[bold]Error Analysis and Recommendations:[/bold]")
    for group in analysis.groups:
        retry = "retryable" if group.strategy.retry else "not retryable"
        console.print(f"\n  [bold]{group.error_type}[/bold] errors ({group.count}, {retry}):")
        for recommendation in group.strategy.recommendations:
            console.print(f"    - {recommendation}")


def render_job(console: Console, job: Job) -> None:
    table = Table(title=f"Job {job.id}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Status", job.status or "UNKNOWN")
    table.add_row("Progress", f"{job.done_percentage:g}%")
    table.add_row("Started", job.started_on or "N/A")
    table.add_row("Finished", job.finished_on or "In progress")
    if job.error_message:
        table.add_row("Error", f"[red]{job.error_message}[/red]")
    console.print(table)

    if job.updates:
        console.print("\n[bold]Progress Updates:[/bold]")
        for index, update in enumerate(job.updates, start=1):
            console.print(f"  {index}. {update.timestamp}: {update.message}")
    if job.results:
        console.print("\n[bold]Final Results:[/bold]")
        for key, value in job.results.items():
            console.print(f"  - {key}: {value}")


def render_retry_strategies(console: Console) -> None:
    table = Table(title="Retry Strategies by Error Type")
    table.add_column("Error Type", style="cyan")
    table.add_column("Retry")
    table.add_column("Action")
    table.add_column("Common Examples")
    for category, strategy in RETRY_STRATEGIES.items():
        table.add_row(
            category.value,
            "[green]Yes[/green]" if strategy.retry else "[red]No[/red]",
            strategy.action,
            "\n".join(strategy.examples),
        )
    console.print(table)


def _department_name(item: Any) -> str | None:
    if isinstance(item, dict):
        return item.get("departmentName")
    return getattr(item, "department_name", None)


def render_ordering(
    console: Console, result: OrderingResult[Any], graph: HierarchyGraph | None = None
) -> None:
    """Departments in creation order, with cycle and missing-parent diagnostics."""
    unresolved_ids = {default_id_of(item) for item in result.unresolved}

    table = Table(title=f"Creation Order ({result.passes} passes)")
    table.add_column("#", justify="right")
    table.add_column("External ID", style="cyan")
    table.add_column("Parent")
    table.add_column("Name")
    for index, item in enumerate(result.ordered, start=1):
        item_id = default_id_of(item)
        marker = " [red](unresolved)[/red]" if item_id in unresolved_ids else ""
        name = _department_name(item)
        table.add_row(
            str(index),
            f"{item_id}{marker}",
            default_parent_of(item) or "-",
            name or "",
        )
    console.print(table)

    if graph is None:
        return
    for cycle in graph.find_cycles():
        console.print(f"[red]Cycle:[/red] {' -> '.join(cycle)}")
    for child, parent in graph.dangling_parents().items():
        console.print(f"[yellow]Missing parent:[/yellow] {child} -> {parent}")


def render_form_feed(console: Console, feed: FormEntryFeed) -> None:
    table = Table(title="Form Entry Feed")
    table.add_column("Collection", style="cyan")
    table.add_column("Count", justify="right", style="green")
    for name, count in feed.counts().items():
        table.add_row(name, str(count))
    console.print(table)


def render_messages(console: Console, title: str, messages: Iterable[str], style: str) -> int:
    """Print a titled bullet list; returns the number of messages."""
    items = list(messages)
    if items:
        console.print(f"\n[{style}]{title} ({len(items)}):[/{style}]")
        for message in items:
            console.print(f"  - {message}")
    return len(items)
