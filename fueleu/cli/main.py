# -*- coding: utf-8 -*-
"""
FuelEU CLI
====================

Command line access to the FuelEU compliance service: reference routes,
baseline comparison, compliance balances, banking and pooling.

Examples:
    fueleu seed
    fueleu compare --route R001
    fueleu compute S1 2024 --intensity 88.0 --fuel 100
    fueleu bank S1 2024 1000000
    fueleu pool 2024 R001 R002 R003
"""

import dataclasses
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from fueleu.config import get_config
from fueleu.exceptions import FuelEUException
from fueleu.models import VERSION, display_status
from fueleu.setup import ComparisonListResponse, FuelEUService

app = typer.Typer(
    name="fueleu",
    help="FuelEU Maritime compliance balance, banking and pooling",
    no_args_is_help=True,
    add_completion=False,
)
console = Console()

_STATUS_STYLE = {"SURPLUS": "green", "DEFICIT": "red", "NEUTRAL": "yellow"}


@app.callback()
def _root(
    ctx: typer.Context,
    database_url: Optional[str] = typer.Option(
        None, "--database-url", "-d", help="Override GL_FUELEU_DATABASE_URL"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """
    FuelEU Maritime compliance service
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    ctx.obj = {"database_url": database_url}


def _service(ctx: typer.Context, seed: bool = True) -> FuelEUService:
    cfg = get_config()
    overrides = {"seed_on_startup": cfg.seed_on_startup and seed}
    url = (ctx.obj or {}).get("database_url")
    if url:
        overrides["database_url"] = url
    service = FuelEUService(config=dataclasses.replace(cfg, **overrides))
    service.startup()
    return service


@contextmanager
def _handle_errors() -> Iterator[None]:
    try:
        yield
    except FuelEUException as exc:
        console.print(f"[red]Error ({exc.kind.value}):[/red] {exc.message}")
        raise typer.Exit(1)


def _status(value: float) -> str:
    status = display_status(value).value
    return f"[{_STATUS_STYLE[status]}]{status}[/{_STATUS_STYLE[status]}]"


@app.command()
def version():
    """Show FuelEU service version"""
    console.print(f"[bold green]FuelEU Maritime v{VERSION}[/bold green]")


@app.command("init-db")
def init_db(ctx: typer.Context):
    """Create the database tables"""
    with _handle_errors():
        _service(ctx, seed=False)
    console.print("[green][OK][/green] Database schema ready")


@app.command()
def seed(ctx: typer.Context):
    """Load the reference routes"""
    with _handle_errors():
        routes = _service(ctx, seed=False).seed_routes()
    console.print(f"[green][OK][/green] {len(routes)} routes stored")


@app.command()
def routes(ctx: typer.Context):
    """List routes"""
    with _handle_errors():
        items = _service(ctx).list_routes()

    table = Table(title="Routes")
    for column in ("Route", "Vessel", "Fuel", "Year", "GHG intensity",
                   "Fuel (t)", "Distance (km)", "Emissions (t)", "Baseline"):
        table.add_column(column)
    for r in items:
        table.add_row(
            r.route_id, r.vessel_type, r.fuel_type, str(r.year),
            f"{r.ghg_intensity:.4f}", f"{r.fuel_consumption:,.0f}",
            f"{r.distance:,.0f}", f"{r.total_emissions:,.0f}",
            "*" if r.is_baseline else "",
        )
    console.print(table)


@app.command()
def baseline(ctx: typer.Context, route_id: str = typer.Argument(..., help="Route id")):
    """Make a route the comparison baseline"""
    with _handle_errors():
        route = _service(ctx).set_baseline(route_id)
    console.print(f"[green][OK][/green] Baseline is now {route.route_id}")


@app.command()
def compare(
    ctx: typer.Context,
    route: Optional[str] = typer.Option(
        None, "--route", "-r", help="Compare only this route"
    ),
):
    """Compare routes against the baseline"""
    with _handle_errors():
        result = _service(ctx).get_comparison(route)

    results = (
        result.comparisons
        if isinstance(result, ComparisonListResponse) else [result]
    )
    table = Table(title="Comparison against baseline")
    for column in ("Baseline", "Route", "GHG intensity", "% diff", "Compliant"):
        table.add_column(column)
    for c in results:
        table.add_row(
            c.baseline.route_id, c.comparison.route_id,
            f"{c.comparison.ghg_intensity:.4f}", f"{c.percent_diff:+.2f}%",
            "[green]yes[/green]" if c.compliant else "[red]no[/red]",
        )
    console.print(table)


@app.command()
def compute(
    ctx: typer.Context,
    ship_id: str = typer.Argument(..., help="Ship id"),
    year: int = typer.Argument(..., help="Reporting year"),
    intensity: float = typer.Option(..., "--intensity", "-i",
                                    help="Actual GHG intensity (gCO2e/MJ)"),
    fuel: float = typer.Option(..., "--fuel", "-f", help="Fuel consumed (t)"),
):
    """Compute and store a compliance balance"""
    with _handle_errors():
        result = _service(ctx).compute_compliance_balance(
            ship_id, year, intensity, fuel,
        )
    cb = result.balance.cb_value
    console.print(f"Energy in scope: {result.energy_in_scope:,.0f} MJ")
    console.print(f"CB {ship_id}/{year}: {cb:,.2f} gCO2e {_status(cb)}")


@app.command()
def cb(
    ctx: typer.Context,
    ship_id: str = typer.Argument(..., help="Ship id"),
    year: int = typer.Argument(..., help="Reporting year"),
    adjusted: bool = typer.Option(False, "--adjusted", "-a",
                                  help="Net of banked and applied amounts"),
):
    """Show a ship's compliance balance"""
    with _handle_errors():
        service = _service(ctx)
        if adjusted:
            value = service.get_adjusted_compliance_balance(ship_id, year)
        else:
            value = service.get_compliance_balance(ship_id, year).cb_value
    label = "Adjusted CB" if adjusted else "CB"
    console.print(f"{label} {ship_id}/{year}: {value:,.2f} gCO2e {_status(value)}")


@app.command()
def bank(
    ctx: typer.Context,
    ship_id: str = typer.Argument(..., help="Ship id"),
    year: int = typer.Argument(..., help="Reporting year"),
    amount: float = typer.Argument(..., help="Amount to bank (gCO2e)"),
):
    """Bank surplus compliance balance"""
    with _handle_errors():
        result = _service(ctx).bank_surplus(ship_id, year, amount)
    console.print(
        f"[green][OK][/green] Banked {result.entry.amount:,.2f} gCO2e "
        f"(remaining {result.remaining_cb:,.2f})"
    )


@app.command("apply")
def apply_banked(
    ctx: typer.Context,
    ship_id: str = typer.Argument(..., help="Ship id"),
    year: int = typer.Argument(..., help="Reporting year"),
    amount: float = typer.Argument(..., help="Amount to apply (gCO2e)"),
):
    """Apply banked surplus to the compliance balance"""
    with _handle_errors():
        result = _service(ctx).apply_banked(ship_id, year, amount)
    console.print(
        f"[green][OK][/green] Applied {result.entry.amount:,.2f} gCO2e: "
        f"CB {result.cb_before:,.2f} -> {result.cb_after:,.2f}"
    )


@app.command()
def records(
    ctx: typer.Context,
    ship_id: str = typer.Argument(..., help="Ship id"),
    year: int = typer.Argument(..., help="Reporting year"),
):
    """List banking ledger entries, newest first"""
    with _handle_errors():
        result = _service(ctx).get_banking_records(ship_id, year)

    table = Table(title=f"Ledger {ship_id}/{year}")
    for column in ("Created", "Kind", "Amount (gCO2e)"):
        table.add_column(column)
    for entry in result.records:
        table.add_row(entry.created_at.isoformat(), entry.kind.value,
                      f"{entry.amount:,.2f}")
    console.print(table)
    console.print(f"Available banked: {result.available_balance:,.2f} gCO2e")


@app.command()
def pool(
    ctx: typer.Context,
    year: int = typer.Argument(..., help="Reporting year"),
    ship_ids: List[str] = typer.Argument(..., help="Member ship ids"),
):
    """Create a compliance pool"""
    with _handle_errors():
        result = _service(ctx).create_pool(year, ship_ids)

    table = Table(title=f"Pool {result.pool.id}")
    for column in ("Ship", "CB before", "CB after"):
        table.add_column(column)
    for m in result.pool.members:
        table.add_row(m.ship_id, f"{m.cb_before:,.2f}", f"{m.cb_after:,.2f}")
    console.print(table)
    console.print(
        f"Total before {result.total_cb_before:,.2f}, "
        f"after {result.total_cb_after:,.2f}"
    )


@app.command()
def serve(
    ctx: typer.Context,
    host: Optional[str] = typer.Option(None, "--host", help="Bind host"),
    port: Optional[int] = typer.Option(None, "--port", "-p", help="Bind port"),
):
    """Run the HTTP API"""
    import uvicorn

    from fueleu.app import create_app

    cfg = get_config()
    url = (ctx.obj or {}).get("database_url")
    if url:
        cfg = dataclasses.replace(cfg, database_url=url)
    uvicorn.run(create_app(cfg), host=host or cfg.host, port=port or cfg.port)


def main():
    """Main entry point for the fueleu CLI"""
    app()


if __name__ == "__main__":
    main()
