"""
Main CLI application using Typer.
"""

import asyncio
import logging
from pathlib import Path
from typing import Annotated, List, Optional, Sequence

import pendulum
import typer
from pendulum import Date
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from ..config import AppConfig
from ..adapters.json_store import JsonFileBookingStore
from ..adapters.rest_store import RestBookingStore
from ..domain.availability import AvailabilityResolver
from ..domain.exceptions import BookingError, BookingStoreError, SelectionError, SlotConflictError
from ..domain.models import Booking, Provider
from ..domain.schedule import WeeklyScheduleTemplate
from ..domain.slot_generator import SlotGenerator
from ..services.booking_service import BookingService, BookingStoreProtocol
from ..services.booking_wizard import (
    BookingWizard,
    EnterContactInfo,
    SelectDate,
    SelectPeriodAndTime,
    SelectProvider,
    SelectSessionType,
)

app = typer.Typer(
    name="sessionbooker",
    help="Book 45-minute sessions against the weekly schedule",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml")
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")] = False,
):
    """
    Session booking engine.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def build_store(config: AppConfig) -> BookingStoreProtocol:
    """Create the record store selected by the configuration."""
    if config.store.url:
        return RestBookingStore(
            base_url=config.store.url,
            api_key=config.store.api_key,
            table=config.store.table,
            timeout=config.store.timeout_seconds,
        )
    return JsonFileBookingStore(config.store.path)


def build_service(config: AppConfig, store: Optional[BookingStoreProtocol] = None) -> BookingService:
    """Wire the domain components around a record store."""
    return BookingService(
        store=store or build_store(config),
        template=WeeklyScheduleTemplate(),
        slot_generator=SlotGenerator(
            period_starts=config.slots.period_starts(),
            slot_count=config.slots.slots_per_period,
            step_minutes=config.slots.duration_minutes,
        ),
        resolver=AvailabilityResolver(),
    )


def _load_config(config_file: Optional[Path]) -> AppConfig:
    try:
        return AppConfig.load(config_file)
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)


def _service_for(config: AppConfig) -> BookingService:
    try:
        return build_service(config)
    except ValueError as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)


def _parse_date(value: str, tz: str) -> Date:
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Erro ao interpretar a data '{value}': {e}[/red]")
        raise typer.Exit(1)


def _ask_choice(prompt_text: str, count: int) -> Optional[int]:
    """
    Ask for a 1-based option number. Returns None for 0 (back).

    Raises:
        SelectionError: If the answer is not a listed option
    """
    raw = typer.prompt(prompt_text).strip()
    if raw == "0":
        return None
    if raw.isdigit() and 1 <= int(raw) <= count:
        return int(raw) - 1
    raise SelectionError(f"Opção inválida: {raw}")


def _print_options(labels: Sequence[str]) -> None:
    for idx, label in enumerate(labels, 1):
        console.print(f"  {idx}. {label}")
    console.print("  [dim]0. Voltar[/dim]")


def _print_slots(state: SelectPeriodAndTime) -> None:
    table = Table(show_header=True, header_style="bold cyan")
    table.add_column("#", style="dim")
    table.add_column("Horário", style="bold")
    table.add_column(state.provider.label)

    for idx, slot in enumerate(state.slots, 1):
        if slot.is_available_for(state.provider):
            table.add_row(str(idx), slot.time, "[green]disponível[/green]")
        else:
            table.add_row(str(idx), f"[dim]{slot.time}[/dim]", "[red]indisponível[/red]")

    console.print(table)


async def _run_booking_wizard(wizard: BookingWizard, template: WeeklyScheduleTemplate, today: Date) -> Optional[Booking]:
    """
    Drive the wizard from the terminal until a booking is confirmed.

    Returns:
        The created booking, or None if the user quit at the first step
    """
    while True:
        state = wizard.state

        try:
            # 1. DATA
            if isinstance(state, SelectDate):
                console.print("\n[bold]1️⃣  Escolha a data[/bold]")
                dates = template.upcoming_dates(today, days=14)
                for idx, day in enumerate(dates, 1):
                    rule = template.rule_for_date(day)
                    periods = ", ".join(p.label for p in rule.periods)
                    console.print(f"  {idx}. {rule.day_name}, {day.format('DD/MM/YYYY')} ({periods})")
                console.print("  [dim]q. Sair[/dim]")

                raw = typer.prompt("\n→ Data (número ou YYYY-MM-DD)").strip()
                if raw.lower() == "q":
                    return None
                if raw.isdigit() and 1 <= int(raw) <= len(dates):
                    wizard.select_date(dates[int(raw) - 1])
                else:
                    try:
                        day = pendulum.from_format(raw, "YYYY-MM-DD").date()
                    except ValueError:
                        raise SelectionError(f"Data inválida: {raw}")
                    wizard.select_date(day)

            # 2. TIPO DE SESSÃO
            elif isinstance(state, SelectSessionType):
                console.print(f"\n[bold]2️⃣  Tipo de sessão[/bold] ({state.rule.day_name})")
                _print_options([t.label for t in state.options])
                choice = _ask_choice("→ Sessão", len(state.options))
                if choice is None:
                    wizard.back()
                else:
                    wizard.select_session_type(state.options[choice])

            # 3. PROFISSIONAL
            elif isinstance(state, SelectProvider):
                console.print(f"\n[bold]3️⃣  Profissional[/bold] ({state.session_type.label})")
                providers = list(Provider)
                _print_options([p.label for p in providers])
                choice = _ask_choice("→ Profissional", len(providers))
                if choice is None:
                    wizard.back()
                else:
                    wizard.select_provider(providers[choice])

            # 4. PERÍODO E HORÁRIO
            elif isinstance(state, SelectPeriodAndTime):
                if state.period is None:
                    if len(state.periods) == 1:
                        await wizard.select_period(state.periods[0])
                        continue
                    console.print("\n[bold]4️⃣  Período[/bold]")
                    _print_options([p.label for p in state.periods])
                    choice = _ask_choice("→ Período", len(state.periods))
                    if choice is None:
                        wizard.back()
                    else:
                        await wizard.select_period(state.periods[choice])
                    continue

                if not state.slots:
                    if typer.confirm("→ Tentar carregar os horários novamente?", default=True):
                        await wizard.refresh_slots()
                    else:
                        wizard.back()
                    continue

                console.print(f"\n[bold]4️⃣  Horário[/bold] ({state.period.label})")
                _print_slots(state)
                console.print("  [dim]0. Voltar[/dim]")
                choice = _ask_choice("→ Horário", len(state.slots))
                if choice is None:
                    wizard.back()
                else:
                    wizard.select_time(state.slots[choice].time)

            # 5. DADOS
            elif isinstance(state, EnterContactInfo):
                console.print("\n[bold]5️⃣  Seus dados[/bold] [dim](0 para voltar)[/dim]")
                console.print(
                    f"   {state.rule.day_name}, {state.day.format('DD/MM/YYYY')} • "
                    f"{state.period.label} • {state.time} • {state.session_type.label} "
                    f"com {state.provider.label}"
                )
                name = typer.prompt("→ Nome completo", default=state.contact.name or None).strip()
                if name == "0":
                    wizard.back()
                    continue
                email = typer.prompt("→ Email", default=state.contact.email or None)
                phone = typer.prompt("→ Telefone", default=state.contact.phone or None)

                return await wizard.submit(name=name, email=email, phone=phone)

        except SlotConflictError:
            console.print(
                "[bold red]✗ Este horário acabou de ser reservado.[/bold red] "
                "Escolha outro horário."
            )
        except BookingStoreError as e:
            console.print(f"[bold red]✗ Falha ao acessar os agendamentos:[/bold red] {e}")
            console.print("[yellow]Seus dados foram mantidos, tente novamente.[/yellow]")
        except SelectionError as e:
            console.print(f"[yellow]⚠ {e}[/yellow]")


@app.command()
def book(
    config_file: ConfigOption = None,
    email: Annotated[Optional[str], typer.Option("--email", help="E-mail of the signed-in user, used to pre-fill the form.")] = None,
):
    """
    Book a session interactively.
    """
    config = _load_config(config_file)
    service = _service_for(config)
    tz = config.timezone
    today = pendulum.today(tz).date()

    wizard = BookingWizard(
        service,
        timezone=tz,
        current_user_email=email or config.current_user_email,
        confirmation_delay=config.confirmation_delay_seconds,
    )

    console.print("\n" + "="*60)
    console.print("[bold cyan]🗓️  Agende sua Sessão[/bold cyan]")
    console.print("Escolha o melhor horário para sua sessão de "
                  f"{config.slots.duration_minutes} minutos")
    console.print("="*60)

    booking = asyncio.run(_run_booking_wizard(wizard, service.template, today))
    if booking is None:
        console.print("\nAté logo!\n")
        return

    console.print()
    console.print(Panel.fit(
        f"[bold green]✓ Agendamento confirmado![/bold green]\n\n"
        f"[bold]{booking.client_name}[/bold]\n"
        f"{booking.format_display()}\n\n"
        f"Você receberá uma confirmação no email {booking.client_email}.",
        title="Agendamento"
    ))
    console.print()


@app.command()
def slots(
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    config_file: ConfigOption = None,
):
    """
    Show availability of every session type and period on a date.
    """
    config = _load_config(config_file)
    service = _service_for(config)
    date = _parse_date(day, config.timezone)

    rule = service.template.rule_for_date(date)
    if rule is None:
        console.print(f"[yellow]⚠ Não há atendimento em {date.format('DD/MM/YYYY')}.[/yellow]")
        return

    try:
        bookings = asyncio.run(service.fetch_bookings(day=date))
    except BookingError as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)

    providers = list(service.resolver.providers)
    table = Table(
        title=f"{rule.day_name}, {date.format('DD/MM/YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Sessão", style="bold yellow")
    table.add_column("Período")
    table.add_column("Horário", style="bold")
    for provider in providers:
        table.add_column(provider.label)

    for session_type in service.template.session_types_for(date.weekday()):
        for period in service.template.periods_for(date.weekday(), session_type):
            time_slots = service.calculate_slots(
                day=date,
                period=period,
                session_type=session_type,
                bookings=bookings,
            )
            for slot in time_slots:
                marks = [
                    "[green]✓[/green]" if slot.is_available_for(p) else "[red]✗[/red]"
                    for p in providers
                ]
                table.add_row(session_type.label, period.label, slot.time, *marks)

    console.print()
    console.print(table)
    console.print()


@app.command()
def agenda(
    day: Annotated[str, typer.Argument(help="Date (YYYY-MM-DD)")],
    provider: Annotated[Optional[Provider], typer.Option("--provider", "-p", help="Only show this provider's bookings.")] = None,
    config_file: ConfigOption = None,
):
    """
    List the bookings of a date (professional dashboard).
    """
    config = _load_config(config_file)
    service = _service_for(config)
    date = _parse_date(day, config.timezone)

    try:
        bookings: List[Booking] = asyncio.run(service.agenda(day=date, provider=provider))
    except BookingError as e:
        console.print(f"[bold red]Erro:[/bold red] {e}")
        raise typer.Exit(1)

    if not bookings:
        console.print(f"\n[yellow]Nenhum agendamento para {date.format('DD/MM/YYYY')}.[/yellow]\n")
        return

    table = Table(
        title=f"Agendamentos - {date.format('DD/MM/YYYY')}",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Horário", style="bold")
    table.add_column("Período")
    table.add_column("Sessão", style="bold yellow")
    table.add_column("Profissional")
    table.add_column("Cliente")
    table.add_column("Contato", style="dim")

    for booking in bookings:
        table.add_row(
            booking.time,
            booking.period.label,
            booking.session_type.label,
            booking.provider.label,
            booking.client_name,
            f"{booking.client_email} / {booking.client_phone}",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def schedule():
    """
    Show the weekly schedule.
    """
    template = WeeklyScheduleTemplate()

    table = Table(
        title="Horários de atendimento",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Dia", style="bold yellow")
    table.add_column("Sessão")
    table.add_column("Períodos")

    for rule in template.rules():
        for session_type in template.session_types_for(rule.weekday):
            fixed = rule.fixed_time_for(session_type)
            if fixed is not None:
                periods = f"{fixed.period.label} (somente às {fixed.time})"
            else:
                periods = ", ".join(
                    p.label for p in template.periods_for(rule.weekday, session_type)
                )
            table.add_row(rule.day_name, session_type.label, periods)

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]sessionbooker[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
