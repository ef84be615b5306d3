"""
Main CLI application using Typer.
"""

import json
import logging
from pathlib import Path
from typing import Optional, Annotated, Tuple

import pendulum
import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from ..adapters.file_repository import FileSalonRepository
from ..config import AppConfig, get_default_config_path
from ..domain.exceptions import SlotEngineError
from ..services.availability import AvailabilityService

app = typer.Typer(
    name="salonslots",
    help="Compute bookable appointment slots for salon providers",
    add_completion=False
)

console = Console()

ConfigOption = Annotated[
    Optional[Path],
    typer.Option("--config", "-c", help="Path to config file. Defaults to ./config.yaml"),
]
VerboseOption = Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging.")]


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _load(config_file: Optional[Path], verbose: bool = False) -> Tuple[AppConfig, FileSalonRepository]:
    """Load configuration and the salon data it points to."""
    config_path = config_file or get_default_config_path()
    config = AppConfig.load_from_yaml(config_path)
    _configure_logging("DEBUG" if verbose else config.log_level)

    repository = FileSalonRepository.from_file(config.resolve_data_file(config_path))
    return config, repository


def _build_service(
    config: AppConfig,
    repository: FileSalonRepository,
    step: Optional[int] = None
) -> AvailabilityService:
    return AvailabilityService(
        providers=repository,
        variants=repository,
        appointments=repository,
        blackouts=repository,
        engine=config.build_engine(step_minutes=step),
        hide_past_slots=config.hide_past_slots,
    )


def _parse_date(value: str, tz: str):
    try:
        return pendulum.from_format(value, "YYYY-MM-DD", tz=tz).date()
    except ValueError as e:
        console.print(f"[red]Could not parse date {value!r}: {escape(str(e))}[/red]")
        raise typer.Exit(1)


def _fail(error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")
    raise typer.Exit(1)


@app.command()
def slots(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    service: Annotated[str, typer.Argument(help="Service id")],
    variant: Annotated[str, typer.Argument(help="Variant name")],
    day: Annotated[str, typer.Argument(metavar="DATE", help="Date in the salon timezone (YYYY-MM-DD)")],
    step: Annotated[Optional[int], typer.Option("--step", "-s", help="Grid step in minutes")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print slots as JSON.")] = False,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    List bookable slots of a provider on one day.

    Examples:

        salonslots slots anna haircut short 2025-03-31
        salonslots slots anna haircut long 2025-03-31 --step 30 --json
    """
    try:
        config, repository = _load(config_file, verbose)
        target_date = _parse_date(day, config.timezone)
        availability = _build_service(config, repository, step)

        found = availability.find_slots(
            provider_id=provider,
            service_id=service,
            variant_name=variant,
            target_date=target_date,
        )
    except (FileNotFoundError, SlotEngineError) as e:
        _fail(e)

    if as_json:
        typer.echo(json.dumps({"slots": [slot.to_dict() for slot in found]}, indent=2))
        return

    console.print()
    if not found:
        console.print(
            "[yellow]⚠ No bookable slots found.[/yellow]\n"
            "Try another day or a shorter variant."
        )
    else:
        console.print(f"[bold green]✓ {len(found)} bookable slot(s):[/bold green]\n")
        for slot in found:
            console.print(f"  {slot.format_display(config.timezone)}")
    console.print()


@app.command(name="next")
def next_slot(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    service: Annotated[str, typer.Argument(help="Service id")],
    variant: Annotated[str, typer.Argument(help="Variant name")],
    from_day: Annotated[Optional[str], typer.Option("--from", help="First day to search (YYYY-MM-DD). Defaults to today.")] = None,
    horizon: Annotated[Optional[int], typer.Option("--horizon", help="Number of days to search")] = None,
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Show the earliest bookable slot of a provider.
    """
    try:
        config, repository = _load(config_file, verbose)
        start_date = _parse_date(from_day, config.timezone) if from_day else pendulum.today(config.timezone).date()
        availability = _build_service(config, repository)

        slot = availability.next_available(
            provider_id=provider,
            service_id=service,
            variant_name=variant,
            from_date=start_date,
            horizon_days=horizon if horizon is not None else config.horizon_days,
        )
    except (FileNotFoundError, SlotEngineError) as e:
        _fail(e)

    if slot is None:
        console.print("[yellow]⚠ No bookable slot within the search horizon.[/yellow]")
        return

    console.print(f"[bold green]✓ Next slot:[/bold green] {slot.format_display(config.timezone)}")


@app.command()
def check(
    provider: Annotated[str, typer.Argument(help="Provider id")],
    service: Annotated[str, typer.Argument(help="Service id")],
    variant: Annotated[str, typer.Argument(help="Variant name")],
    start: Annotated[str, typer.Argument(help="Slot start (ISO-8601; local salon time if no offset)")],
    config_file: ConfigOption = None,
    verbose: VerboseOption = False,
):
    """
    Re-validate a chosen slot before booking it.
    """
    try:
        config, repository = _load(config_file, verbose)
        try:
            slot_start = pendulum.parse(start, tz=config.timezone)
        except ValueError as e:
            console.print(f"[red]Could not parse start {start!r}: {escape(str(e))}[/red]")
            raise typer.Exit(1)

        availability = _build_service(config, repository)
        slot = availability.validate_booking(
            provider_id=provider,
            service_id=service,
            variant_name=variant,
            start=slot_start,
        )
    except (FileNotFoundError, SlotEngineError) as e:
        _fail(e)

    console.print(f"[bold green]✓ Slot available:[/bold green] {slot.format_display(config.timezone)}")


@app.command()
def providers(config_file: ConfigOption = None):
    """
    List all configured providers.
    """
    try:
        _, repository = _load(config_file)
    except (FileNotFoundError, SlotEngineError) as e:
        _fail(e)

    provider_list = repository.list_providers()
    if not provider_list:
        console.print("[yellow]No providers defined in the salon data file.[/yellow]")
        return

    table = Table(
        title="Providers",
        show_header=True,
        header_style="bold cyan"
    )
    table.add_column("Id", style="bold yellow")
    table.add_column("Name")
    table.add_column("Working days", style="dim")
    table.add_column("Active")

    for provider in provider_list:
        table.add_row(
            provider.id,
            provider.display_name(),
            ", ".join(provider.working_days()) or "-",
            "yes" if provider.active else "no",
        )

    console.print()
    console.print(table)
    console.print()


@app.command()
def version():
    """
    Show version information.
    """
    from .. import __version__
    console.print(f"\n[bold cyan]salonslots[/bold cyan] version [bold]{__version__}[/bold]\n")


if __name__ == "__main__":
    app()
