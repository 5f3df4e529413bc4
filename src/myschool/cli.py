"""Command line interface for MySchool."""

from __future__ import annotations

import logging
from datetime import date as date_type
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from myschool.config import LOG_FORMAT, AppConfig, parse_log_level
from myschool.ingestion.neis import NeisError
from myschool.service import SchoolService
from myschool.web.app import create_app


console = Console()
app = typer.Typer(help="MySchool - Korean school directory, meals and timetables")


def _setup_logging(verbose: bool, level: str = "info") -> None:
    resolved = logging.DEBUG if verbose else parse_log_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT)


def _load_config(env_file: Optional[Path]) -> AppConfig:
    config = AppConfig.from_env(env_file)
    if not config.api_key:
        raise typer.BadParameter("NEIS_API_KEY is required (set it in the environment or a .env file)")
    return config


def _today() -> str:
    return date_type.today().strftime("%Y%m%d")


@app.command()
def serve(
    host: Optional[str] = typer.Option(None, help="Host interface"),
    port: Optional[int] = typer.Option(None, help="Server port"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Path to a .env file"),
) -> None:
    """Start the HTTP API."""
    import uvicorn

    config = _load_config(env_file)
    service = SchoolService(config)
    bind_host = host or config.host
    bind_port = port or config.port
    console.print(f"Starting MySchool API on http://{bind_host}:{bind_port}")
    uvicorn.run(
        create_app(service),
        host=bind_host,
        port=bind_port,
        reload=False,
        log_level=config.log_level if config.log_level in {"debug", "info", "warning", "error"} else "info",
    )


@app.command()
def search(
    query: str = typer.Argument(..., help="School name, part of it, or its initial consonants"),
    limit: int = typer.Option(20, help="Number of results to display"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Path to a .env file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Load the full directory once and run a ranked search."""
    config = _load_config(env_file)
    _setup_logging(verbose, config.log_level)
    service = SchoolService(config)
    try:
        console.print("Loading school directory...")
        service.refresh()
        results = service.search(query)
    except NeisError as exc:
        console.print(f"[red]Search failed: {exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        service.close()

    if not results:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Office")
    table.add_column("Code")
    table.add_column("Address")

    for school in results[:limit]:
        table.add_row(school.name, school.kind, school.org_code, school.code, school.address)

    console.print(table)


@app.command()
def meals(
    org_code: str = typer.Argument(..., help="Education office code, e.g. B10"),
    school_code: str = typer.Argument(..., help="School code"),
    date: Optional[str] = typer.Option(None, help="Date (YYYYMMDD), defaults to today"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Path to a .env file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show the meals served by a school on one day."""
    config = _load_config(env_file)
    _setup_logging(verbose, config.log_level)
    service = SchoolService(config)
    try:
        result = service.get_meals(org_code, school_code, date or _today())
    except NeisError as exc:
        console.print(f"[red]Failed to get meals: {exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        service.close()

    if not result:
        console.print("[yellow]No meals found.[/yellow]")
        return

    for key, meal in result.items():
        console.print(f"[bold]{key}[/bold] ({meal.calories:g} kcal)")
        for dish in meal.menu:
            console.print(f"  - {dish}")


@app.command()
def timetable(
    org_code: str = typer.Argument(..., help="Education office code, e.g. B10"),
    school_code: str = typer.Argument(..., help="School code"),
    grade: str = typer.Argument(..., help="Grade"),
    class_name: str = typer.Argument(..., metavar="CLASS", help="Class"),
    date: Optional[str] = typer.Option(None, help="Date (YYYYMMDD), defaults to today"),
    env_file: Optional[Path] = typer.Option(None, "--env-file", help="Path to a .env file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Show one class's subjects for one day."""
    config = _load_config(env_file)
    _setup_logging(verbose, config.log_level)
    service = SchoolService(config)
    try:
        subjects = service.get_timetable(org_code, school_code, grade, class_name, date or _today())
    except NeisError as exc:
        console.print(f"[red]Failed to get timetable: {exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        service.close()

    if not subjects:
        console.print("[yellow]No timetable found.[/yellow]")
        return

    for period, subject in enumerate(subjects, start=1):
        console.print(f"{period}. {subject}")
