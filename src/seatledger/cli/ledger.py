"""
Seatledger CLI - Ledger subcommand.

Provides commands for operating a ticket ledger stored in a project
directory:
- create-event: Register a new event
- events / event: Inspect events
- price: Quote the current price of one or more tickets
- buy / buy-batch: Purchase tickets
- transfer: Hand a ticket to another account
- tickets: List tickets
- fund / balance: Manage the local balance book
- revenue: Show accrued platform fees
- backup: Copy the ledger to a backup file
"""

import json
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from seatledger.core.config import LedgerConfig, config_path
from seatledger.ledger import (
    Event,
    InMemoryPaymentService,
    LedgerResult,
    StaticClock,
    StorageFactory,
    Ticket,
    TicketLedger,
)

# Create the ledger subcommand app
ledger_app = typer.Typer(
    name="ledger",
    help="Ticket ledger commands",
    no_args_is_help=True,
)

# Rich console for output
console = Console()


class LedgerSession:
    """A ledger opened from a project directory, with its balance book."""

    def __init__(self, project_path: Path, height: Optional[int] = None):
        self.project_path = project_path
        self.config = LedgerConfig.from_file(config_path(project_path))
        self.balances_path = self._resolve(self.config.payments.balances_path)
        self.payments = self._load_payments()
        store = StorageFactory.create(
            self.config.storage.backend,
            self._resolve(self.config.storage.path),
        )
        clock = StaticClock(self.config.clock.height if height is None else height)
        self.ledger = TicketLedger(
            store=store,
            payments=self.payments,
            clock=clock,
            treasury=self.config.treasury,
            config=self.config,
        )

    def _resolve(self, path: str) -> Path:
        p = Path(path)
        return p if p.is_absolute() else self.project_path / p

    def _load_payments(self) -> InMemoryPaymentService:
        if not self.balances_path.exists():
            return InMemoryPaymentService()
        with open(self.balances_path, "r", encoding="utf-8") as f:
            return InMemoryPaymentService.from_dict(json.load(f))

    def save_balances(self) -> None:
        """
        Persist the balance book.

        Called after the ledger has committed, so a purchase is on disk
        before its debit. The file is rewritten through a temporary
        sibling; a failed write keeps the previous balances intact.
        """
        self.balances_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.balances_path.with_name(self.balances_path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.payments.to_dict(), f, indent=2)
        os.replace(tmp_path, self.balances_path)


def _open(path: Optional[Path], height: Optional[int] = None) -> LedgerSession:
    """Open the ledger for the project."""
    return LedgerSession((path or Path.cwd()).resolve(), height)


def _fail(result: LedgerResult) -> None:
    """Print a rejected result and exit non-zero."""
    console.print(f"[red]Rejected ({result.error.value}):[/red] {result.message}")
    raise typer.Exit(1)


def _event_panel(event: Event) -> Panel:
    status = "[green]Active[/green]" if event.active else "[dim]Inactive[/dim]"
    body = "\n".join(
        [
            f"[bold]{event.name}[/bold]  ({event.event_type})",
            f"Venue: {event.venue}",
            f"At height: {event.event_height}",
            f"Supply: {event.available_supply}/{event.total_supply} available",
            f"Base price: {event.base_price}",
            f"Creator: {event.creator}",
            f"Status: {status}",
        ]
        + ([f"\n{event.description}"] if event.description else [])
    )
    return Panel(body, title=f"Event #{event.event_id}", border_style="blue")


def _tickets_table(tickets: List[Ticket], title: str) -> Table:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Event", justify="right")
    table.add_column("Owner", style="cyan")
    table.add_column("Seat")
    table.add_column("Paid", justify="right")
    table.add_column("Height", justify="right")
    table.add_column("Status")

    for t in tickets:
        if t.used:
            status = "[dim]Used[/dim]"
        elif not t.transferable:
            status = "[yellow]Locked[/yellow]"
        else:
            status = "[green]Valid[/green]"
        table.add_row(
            str(t.ticket_id),
            str(t.event_id),
            t.owner,
            t.seat_info or "[dim]—[/dim]",
            str(t.price_paid),
            str(t.purchase_height),
            status,
        )
    return table


# =============================================================================
# EVENT COMMANDS
# =============================================================================


@ledger_app.command("create-event")
def create_event(
    name: str = typer.Argument(..., help="Event name"),
    event_height: int = typer.Option(..., "--at", help="Height at which the event takes place"),
    total_tickets: int = typer.Option(..., "--tickets", "-n", help="Ticket supply"),
    base_price: int = typer.Option(..., "--price", help="Base ticket price"),
    venue: str = typer.Option("", "--venue", help="Venue name"),
    event_type: str = typer.Option("general", "--type", "-t", help="Event category"),
    description: str = typer.Option("", "--description", "-d", help="Event description"),
    caller: str = typer.Option(..., "--as", help="Account creating the event"),
    height: Optional[int] = typer.Option(None, "--height", help="Override current height"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """Register a new event."""
    session = _open(path, height)
    result = session.ledger.create_event(
        caller,
        name=name,
        description=description,
        venue=venue,
        event_type=event_type,
        event_height=event_height,
        total_tickets=total_tickets,
        base_price=base_price,
    )
    if not result.ok:
        _fail(result)

    console.print(f"[green]✓[/green] Created event [bold]#{result.value}[/bold] {name}")


@ledger_app.command("events")
def list_events(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    height: Optional[int] = typer.Option(None, "--height", help="Override current height"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """List all events with their current price."""
    ledger = _open(path, height).ledger
    events = ledger.list_events()

    if json_output:
        console.print_json(json.dumps([e.to_dict() for e in events]))
        return

    if not events:
        console.print("[yellow]No events registered.[/yellow]")
        return

    table = Table(title="Events", box=box.ROUNDED)
    table.add_column("ID", justify="right", style="dim")
    table.add_column("Name", style="cyan")
    table.add_column("Venue")
    table.add_column("Height", justify="right")
    table.add_column("Available", justify="right")
    table.add_column("Price", justify="right")
    table.add_column("On sale")

    for event in events:
        quote = ledger.get_current_price(event.event_id).unwrap()
        on_sale = (
            "[green]yes[/green]"
            if ledger.is_event_active(event.event_id)
            else "[dim]no[/dim]"
        )
        table.add_row(
            str(event.event_id),
            event.name,
            event.venue,
            str(event.event_height),
            f"{event.available_supply}/{event.total_supply}",
            str(quote.price),
            on_sale,
        )

    console.print(table)


@ledger_app.command("event")
def show_event(
    event_id: int = typer.Argument(..., help="Event ID"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """Show event details."""
    result = _open(path).ledger.get_event(event_id)
    if not result.ok:
        _fail(result)
    console.print(_event_panel(result.value))


@ledger_app.command("price")
def show_price(
    event_id: int = typer.Argument(..., help="Event ID"),
    quantity: int = typer.Option(1, "--quantity", "-q", help="Number of tickets"),
    discount: bool = typer.Option(False, "--discount", help="Apply group discount"),
    height: Optional[int] = typer.Option(None, "--height", help="Override current height"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """Quote the current price, fee included."""
    ledger = _open(path, height).ledger

    if quantity == 1 and not discount:
        result = ledger.get_current_price(event_id)
        if not result.ok:
            _fail(result)
        quote = result.value
        console.print(f"Price: {quote.price}  Fee: {quote.fee}  Total: [bold]{quote.total}[/bold]")
        return

    batch = ledger.quote_batch(event_id, quantity, discount)
    if not batch.ok:
        _fail(batch)
    q = batch.value
    console.print(
        f"{q.quantity} x {q.discounted_unit_price} "
        f"(unit {q.unit_price}, -{q.discount_rate}%)  "
        f"Fee: {q.fee}  Total: [bold]{q.total}[/bold]"
    )


# =============================================================================
# TICKET COMMANDS
# =============================================================================


@ledger_app.command("buy")
def buy_ticket(
    event_id: int = typer.Argument(..., help="Event ID"),
    seat: str = typer.Option("", "--seat", "-s", help="Seat description"),
    caller: str = typer.Option(..., "--as", help="Buying account"),
    height: Optional[int] = typer.Option(None, "--height", help="Override current height"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """Buy a single ticket."""
    session = _open(path, height)
    result = session.ledger.purchase_ticket(caller, event_id, seat)
    if not result.ok:
        _fail(result)

    session.save_balances()
    ticket = session.ledger.get_ticket(result.value).unwrap()
    console.print(
        f"[green]✓[/green] Ticket [bold]#{ticket.ticket_id}[/bold] "
        f"for event #{event_id} at {ticket.price_paid}"
    )


@ledger_app.command("buy-batch")
def buy_batch(
    event_id: int = typer.Argument(..., help="Event ID"),
    seats: List[str] = typer.Argument(..., help="One seat description per ticket"),
    discount: bool = typer.Option(False, "--discount", help="Apply group discount"),
    caller: str = typer.Option(..., "--as", help="Buying account"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    height: Optional[int] = typer.Option(None, "--height", help="Override current height"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """Buy several tickets at once, one per seat given."""
    session = _open(path, height)
    result = session.ledger.purchase_batch(caller, event_id, len(seats), seats, discount)
    if not result.ok:
        _fail(result)

    session.save_balances()
    receipt = result.value

    if json_output:
        console.print_json(json.dumps(receipt.to_dict()))
        return

    ids = receipt.ticket_ids
    console.print(
        f"[green]✓[/green] Tickets [bold]#{ids.start}-#{ids.stop - 1}[/bold] "
        f"({receipt.quantity}) paid {receipt.total_paid}"
        + (f", {receipt.discount_rate}% off" if receipt.discount_rate else "")
    )


@ledger_app.command("transfer")
def transfer_ticket(
    ticket_id: int = typer.Argument(..., help="Ticket ID"),
    new_owner: str = typer.Argument(..., help="Receiving account"),
    caller: str = typer.Option(..., "--as", help="Current owner"),
    height: Optional[int] = typer.Option(None, "--height", help="Override current height"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """Transfer a ticket to another account."""
    result = _open(path, height).ledger.transfer_ticket(caller, ticket_id, new_owner)
    if not result.ok:
        _fail(result)
    console.print(f"[green]✓[/green] Ticket #{ticket_id} now owned by [cyan]{new_owner}[/cyan]")


@ledger_app.command("tickets")
def list_tickets(
    owner: Optional[str] = typer.Option(None, "--owner", "-o", help="Filter by owner"),
    event_id: Optional[int] = typer.Option(None, "--event", "-e", help="Filter by event"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """List tickets."""
    ledger = _open(path).ledger
    tickets = ledger.store.list_tickets(owner=owner, event_id=event_id)

    if not tickets:
        console.print("[yellow]No tickets found.[/yellow]")
        return

    console.print(_tickets_table(tickets, "Tickets"))
    console.print(f"\n[dim]{len(tickets)} ticket(s)[/dim]")


# =============================================================================
# BALANCES & REVENUE
# =============================================================================


@ledger_app.command("fund")
def fund_account(
    account: str = typer.Argument(..., help="Account to credit"),
    amount: int = typer.Argument(..., min=0, help="Amount to credit"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """Credit an account in the local balance book."""
    session = _open(path)
    balance = session.payments.credit(account, amount)
    session.save_balances()
    console.print(f"[green]✓[/green] {account} balance: {balance}")


@ledger_app.command("balance")
def show_balance(
    account: str = typer.Argument(..., help="Account"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """Show an account balance."""
    session = _open(path)
    console.print(f"{account}: {session.payments.get_balance(account)}")


@ledger_app.command("revenue")
def show_revenue(
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """Show total platform fees accrued."""
    ledger = _open(path).ledger
    console.print(f"Platform revenue: [bold]{ledger.get_platform_revenue()}[/bold]")


@ledger_app.command("backup")
def backup_ledger(
    destination: Path = typer.Argument(..., help="Backup file"),
    path: Optional[Path] = typer.Option(None, "--path", "-p", help="Project path"),
):
    """Copy the ledger to a backup file."""
    ledger = _open(path).ledger
    if not ledger.store.backup(destination):
        console.print(f"[red]Backup to {destination} failed[/red]")
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Ledger backed up to {destination}")
