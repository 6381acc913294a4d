"""Command-line interface for the loan service.

Built with Typer for commands and Rich for output.
"""

from datetime import date
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .clients import BookServiceClient, UserServiceClient
from .clock import SystemClock
from .config import get_config
from .db import EventStatus, get_db
from .exceptions import LoanServiceError
from .loans import LoanCreate, LoanResponse, LoanService, LoanUpdate
from .logs import configure_logging
from .status import LoanStatus

# Create the main app
app = typer.Typer(
    name="loanservice",
    help="Manage library book loans.",
    no_args_is_help=True,
)

events_app = typer.Typer(help="Inspect and deliver book availability events.")
app.add_typer(events_app, name="events")

# Rich console for pretty output
console = Console()


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {message}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {message}")


def get_service() -> LoanService:
    """Build a LoanService wired to the configured directories and database."""
    config = get_config()
    return LoanService(
        users=UserServiceClient(config.user_service_url, timeout=config.http_timeout),
        books=BookServiceClient(config.book_service_url, timeout=config.http_timeout),
        db=get_db(config.db_path),
        clock=SystemClock(),
    )


def print_validation_error(error: ValidationError) -> None:
    """Print each field problem of a rejected request on one line."""
    for problem in error.errors():
        field = ".".join(str(part) for part in problem["loc"]) or "input"
        print_error(escape(f"{field}: {problem['msg']}"))


def fail(error: LoanServiceError) -> None:
    """Report a service error and exit with status 1."""
    print_error(f"{error} [dim](HTTP {error.http_status})[/dim]")
    raise typer.Exit(1)


STATUS_STYLES = {
    LoanStatus.ACTIVE: "green",
    LoanStatus.OVERDUE: "bold red",
    LoanStatus.RETURNED: "dim",
    LoanStatus.CANCELLED: "yellow",
}


def format_loan_table(loans: list, today: date, title: str = "Loans") -> Table:
    """Create a rich table for displaying loans."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("User", justify="right")
    table.add_column("Book", justify="right")
    table.add_column("Loaned")
    table.add_column("Due")
    table.add_column("Returned")
    table.add_column("Status")
    table.add_column("Notes", max_width=30)

    for loan in loans:
        status = LoanStatus(loan.status)
        status_str = f"[{STATUS_STYLES[status]}]{status.display_name}[/]"
        if loan.is_overdue_on(today):
            status_str += f" [red]({loan.days_overdue_on(today)}d late)[/red]"
        table.add_row(
            str(loan.id),
            str(loan.user_id),
            str(loan.book_id),
            loan.loan_date.isoformat(),
            loan.due_date.isoformat(),
            loan.return_date.isoformat() if loan.return_date else "-",
            status_str,
            loan.notes or "",
        )

    return table


# ============================================================================
# Callbacks
# ============================================================================


@app.callback()
def main_callback(
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level (defaults to LOANSERVICE_LOG_LEVEL)"
    ),
) -> None:
    """Manage library book loans."""
    configure_logging(log_level or get_config().log_level)


# ============================================================================
# Loan Commands
# ============================================================================


@app.command()
def create(
    user_id: int = typer.Argument(..., help="User borrowing the book"),
    book_id: int = typer.Argument(..., help="Book to lend"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="Notes (max 500 chars)"),
) -> None:
    """Lend a book to a user."""
    try:
        request = LoanCreate(user_id=user_id, book_id=book_id, notes=notes)
    except ValidationError as e:
        print_validation_error(e)
        raise typer.Exit(1)

    service = get_service()
    try:
        loan = service.create_loan(request.user_id, request.book_id, request.notes)
    except LoanServiceError as e:
        fail(e)

    print_success(f"Loan {loan.id} created: book {book_id} lent to user {user_id}")
    console.print(f"[dim]Due: {loan.due_date.isoformat()}[/dim]")


@app.command("list")
def list_loans(
    user: Optional[int] = typer.Option(None, "--user", "-u", help="Only loans of this user"),
    book: Optional[int] = typer.Option(None, "--book", "-b", help="Only loans of this book"),
    status: Optional[LoanStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
    active: bool = typer.Option(False, "--active", "-a", help="Only active loans (with --user)"),
) -> None:
    """List loans."""
    if user is not None and book is not None:
        print_error("Use either --user or --book, not both")
        raise typer.Exit(1)
    if active and user is None:
        print_error("--active can only be used with --user")
        raise typer.Exit(1)

    service = get_service()
    try:
        if user is not None and active:
            loans = service.find_active_loans_for_user(user)
        elif user is not None:
            loans = service.find_loans_by_user(user)
        elif book is not None:
            loans = service.find_loans_by_book(book)
        elif status is not None:
            loans = service.find_loans_by_status(status)
        else:
            loans = service.find_all_loans()
    except LoanServiceError as e:
        fail(e)

    if status is not None and (user is not None or book is not None):
        loans = [loan for loan in loans if loan.status == status]

    if not loans:
        console.print("[dim]No loans found[/dim]")
        return

    console.print(format_loan_table(loans, service.clock.today()))


@app.command()
def show(
    loan_id: int = typer.Argument(..., help="Loan ID"),
    as_json: bool = typer.Option(False, "--json", help="Print as JSON"),
) -> None:
    """Show one loan."""
    service = get_service()
    try:
        loan = service.find_loan_by_id(loan_id)
    except LoanServiceError as e:
        fail(e)

    response = LoanResponse.from_loan(loan, service.clock.today())
    if as_json:
        console.print_json(response.model_dump_json())
        return

    console.print(format_loan_table([loan], service.clock.today(), title=f"Loan {loan_id}"))
    console.print(f"[dim]{response.status.description}. Duration: {response.loan_duration_days} days[/dim]")


@app.command("return")
def return_loan(
    loan_id: int = typer.Argument(..., help="Loan ID to return"),
) -> None:
    """Mark a loan as returned."""
    service = get_service()
    try:
        loan = service.return_book(loan_id)
    except LoanServiceError as e:
        fail(e)

    print_success(f"Loan {loan.id} returned on {loan.return_date.isoformat()}")
    failed = service.events.list_events(EventStatus.FAILED)
    if any(event.loan_id == loan.id for event in failed):
        print_warning(
            "Book directory not updated; run 'loanservice events flush' to retry"
        )


@app.command()
def cancel(
    loan_id: int = typer.Argument(..., help="Loan ID to cancel"),
) -> None:
    """Cancel an active loan."""
    service = get_service()
    try:
        loan = service.cancel_loan(loan_id)
    except LoanServiceError as e:
        fail(e)

    print_success(f"Loan {loan.id} cancelled")


@app.command()
def extend(
    loan_id: int = typer.Argument(..., help="Loan ID"),
    days: int = typer.Argument(..., help="Days to add (1-30)"),
) -> None:
    """Extend the due date of an active loan."""
    service = get_service()
    try:
        loan = service.extend_loan(loan_id, days)
    except LoanServiceError as e:
        fail(e)

    print_success(f"Loan {loan.id} extended until {loan.due_date.isoformat()}")


@app.command()
def update(
    loan_id: int = typer.Argument(..., help="Loan ID"),
    due: Optional[str] = typer.Option(None, "--due", "-d", help="New due date (YYYY-MM-DD)"),
    notes: Optional[str] = typer.Option(None, "--notes", "-n", help="New notes"),
) -> None:
    """Change the due date or notes of a loan."""
    fields = {}
    if due is not None:
        try:
            fields["due_date"] = date.fromisoformat(due)
        except ValueError:
            print_error(f"Invalid date: {due}")
            raise typer.Exit(1)
    if notes is not None:
        fields["notes"] = notes

    if not fields:
        print_warning("Nothing to update")
        return

    try:
        patch = LoanUpdate(**fields)
    except ValidationError as e:
        print_validation_error(e)
        raise typer.Exit(1)

    service = get_service()
    try:
        loan = service.update_loan(loan_id, patch)
    except LoanServiceError as e:
        fail(e)

    print_success(f"Loan {loan.id} updated")


@app.command()
def delete(
    loan_id: int = typer.Argument(..., help="Loan ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a loan that is no longer active."""
    if not yes and not typer.confirm(f"Delete loan {loan_id}?", default=False):
        console.print("[dim]Cancelled.[/dim]")
        raise typer.Exit(0)

    service = get_service()
    try:
        service.delete_loan(loan_id)
    except LoanServiceError as e:
        fail(e)

    print_success(f"Loan {loan_id} deleted")


@app.command()
def overdue() -> None:
    """Mark past-due loans as overdue and list them."""
    service = get_service()
    loans = service.find_overdue_loans()

    if not loans:
        console.print("[dim]No overdue loans[/dim]")
        return

    console.print(format_loan_table(loans, service.clock.today(), title="Overdue Loans"))


@app.command("due-soon")
def due_soon(
    days: Optional[int] = typer.Option(None, "--days", "-d", help="Days to look ahead"),
) -> None:
    """List active loans due within the next few days."""
    service = get_service()
    look_ahead = days if days is not None else get_config().due_soon_days
    try:
        loans = service.find_loans_due_soon(look_ahead)
    except LoanServiceError as e:
        fail(e)

    if not loans:
        console.print(f"[dim]No loans due in the next {look_ahead} days[/dim]")
        return

    console.print(
        format_loan_table(loans, service.clock.today(), title=f"Due in {look_ahead} days")
    )


@app.command()
def stats() -> None:
    """Show loan statistics."""
    service = get_service()
    statistics = service.get_loan_statistics()

    table = Table(title="Loan Statistics", show_header=True, header_style="bold magenta")
    table.add_column("Status")
    table.add_column("Loans", justify="right")
    table.add_row("Active", str(statistics.active_loans))
    table.add_row("Overdue", str(statistics.overdue_loans))
    table.add_row("Returned", str(statistics.returned_loans))
    table.add_row("Cancelled", str(statistics.cancelled_loans))
    table.add_row("[bold]Total[/bold]", f"[bold]{statistics.total_loans}[/bold]")
    console.print(table)


# ============================================================================
# Event Commands
# ============================================================================


@events_app.command("list")
def events_list(
    status: Optional[EventStatus] = typer.Option(None, "--status", "-s", help="Filter by status"),
) -> None:
    """List availability events."""
    service = get_service()
    events = service.events.list_events(status)

    if not events:
        console.print("[dim]No events[/dim]")
        return

    table = Table(title="Availability Events", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Book", justify="right")
    table.add_column("Loan", justify="right")
    table.add_column("Delta", justify="right")
    table.add_column("Reason")
    table.add_column("Status")
    table.add_column("Attempts", justify="right")
    table.add_column("Last error", max_width=40)

    for event in events:
        table.add_row(
            str(event.id),
            str(event.book_id),
            str(event.loan_id) if event.loan_id is not None else "-",
            f"{event.delta:+d}",
            event.reason,
            event.status,
            str(event.attempts),
            event.last_error or "",
        )
    console.print(table)


@events_app.command("flush")
def events_flush() -> None:
    """Deliver outstanding availability events to the book directory."""
    service = get_service()
    result = service.events.flush()

    if result.dispatched == 0 and result.failed == 0:
        console.print("[dim]No outstanding events[/dim]")
        return

    if result.dispatched:
        print_success(f"Delivered {result.dispatched} event(s)")
    for event_id, error in result.errors:
        print_error(f"Event {event_id}: {error}")
    if not result.success:
        raise typer.Exit(1)


# ============================================================================
# Misc
# ============================================================================


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"loanservice version {__version__}")


def main() -> None:
    """Main entry point."""
    app()


if __name__ == "__main__":
    main()
