"""
cli.py - Rich Command Line Interface for matkin

Usage:
    matkin --help
    matkin run survival.csv fertility.csv --year 2000 --kin m --kin gm
    matkin run U.csv f.csv --population N.csv --time-varying --cohort 1960 --deaths
    matkin life-table lifetable.csv --output survival.csv
    matkin generate --ages 101 --start 1950 --end 2020 --output-dir rates/
    matkin kin-types
    matkin version
"""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path
from typing import List, Optional

import pandas as pd
import typer
from loguru import logger
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .errors import KinshipError

# Initialize Typer app and Rich console
app = typer.Typer(
    name="matkin",
    help="Matrix kinship: expected living and dead kin of Focal by age",
    add_completion=False,
    rich_markup_mode="rich",
)
console = Console()


# =============================================================================
# ENUMS FOR CLI OPTIONS
# =============================================================================

class OutputFormat(str, Enum):
    """Output file formats."""
    csv = "csv"
    json = "json"


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

@app.callback()
def configure(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only show warnings and errors"),
):
    """Matrix kinship: expected living and dead kin of Focal by age."""
    level = "DEBUG" if verbose else "WARNING" if quiet else "INFO"
    logger.remove()
    logger.add(sys.stderr, level=level, format="<level>{level: <8}</level> | {message}")


def fail(error: Exception):
    """Print an error and exit with status 1."""
    console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


def load_rates(path: Optional[Path], name: str):
    """Load one schedule, exiting cleanly on bad input."""
    from matkin.io import load_schedule

    if path is None:
        return None
    try:
        return load_schedule(path, name=name)
    except (FileNotFoundError, KinshipError) as e:
        fail(e)


def print_summary(summary: pd.DataFrame, time_unit: str, max_rows: int = 20):
    """Print the summary at a few Focal ages as a rich table."""
    ages = sorted(summary["age_focal"].unique())
    step = max(1, len(ages) // 5)
    shown = summary[summary["age_focal"].isin(ages[::step])].head(max_rows)

    table = Table(title="Kin Summary", box=box.ROUNDED, title_style="bold cyan")
    table.add_column("Kin", style="bold")
    table.add_column(time_unit.capitalize(), justify="right")
    table.add_column("Focal Age", justify="right")
    table.add_column("Living", justify="right", style="green")
    table.add_column("Mean Age", justify="right")
    table.add_column("SD Age", justify="right")
    if "count_cum_dead" in shown.columns:
        table.add_column("Cum. Dead", justify="right", style="red")

    for _, row in shown.iterrows():
        label = row[time_unit]
        cells = [
            row["kin"],
            "-" if pd.isna(label) else str(label),
            str(row["age_focal"]),
            f"{row['count_living']:.4f}",
            "-" if pd.isna(row["mean_age"]) else f"{row['mean_age']:.1f}",
            "-" if pd.isna(row["sd_age"]) else f"{row['sd_age']:.1f}",
        ]
        if "count_cum_dead" in shown.columns:
            cells.append(f"{row['count_cum_dead']:.4f}")
        table.add_row(*cells)

    console.print(table)
    if len(summary) > len(shown):
        console.print(f"  [dim]Showing {len(shown)} of {len(summary)} summary rows[/dim]")


# =============================================================================
# COMMANDS
# =============================================================================

@app.command()
def run(
    survival: Path = typer.Argument(..., help="CSV survival schedule (age x year)"),
    fertility: Path = typer.Argument(..., help="CSV fertility schedule (age x year)"),
    pi: Optional[Path] = typer.Option(None, "--pi", help="CSV distribution of mothers' ages at birth"),
    population: Optional[Path] = typer.Option(None, "--population", "-n", help="CSV female population"),
    stable: bool = typer.Option(True, "--stable/--time-varying", help="Rate regime"),
    year: Optional[List[int]] = typer.Option(None, "--year", "-y", help="Focal year (repeatable)"),
    cohort: Optional[List[int]] = typer.Option(None, "--cohort", "-c", help="Focal cohort (repeatable)"),
    kin: Optional[List[str]] = typer.Option(None, "--kin", "-k", help="Kin code to report (repeatable)"),
    deaths: bool = typer.Option(False, "--deaths", help="Also compute deaths of kin"),
    birth_female_fraction: float = typer.Option(0.5, "--female-fraction", help="Share of female births"),
    output: Optional[Path] = typer.Option(None, "--output", "-o", help="Output stem (writes <stem>_full/_summary)"),
    format: OutputFormat = typer.Option(OutputFormat.csv, "--format", "-f", help="Output format"),
):
    """
    Compute expected kin counts from survival and fertility schedules.

    Example:
        matkin run U.csv f.csv --year 2000 --kin m --kin d
        matkin run U.csv f.csv -n N.csv --time-varying --cohort 1960 --deaths -o out/kin
    """
    from matkin import compute_kinship
    from matkin.io import ResultFormat, save_result

    console.print(Panel.fit("[bold]Matrix Kinship[/bold]", border_style="blue"))

    with console.status("[bold blue]Loading rates..."):
        U = load_rates(survival, "survival")
        f = load_rates(fertility, "fertility")
        birth_distribution = load_rates(pi, "birth_distribution")
        N = load_rates(population, "population")

    console.print(f"  Loaded rates: [cyan]{U.n_ages}[/cyan] ages x [cyan]{U.n_years}[/cyan] year(s)")

    try:
        with console.status("[bold blue]Projecting kin..."):
            result = compute_kinship(
                U, f, population=N, birth_distribution=birth_distribution,
                stable=stable, focal_year=year or None, focal_cohort=cohort or None,
                birth_female_fraction=birth_female_fraction,
                selected_kin=kin or None, living_only=not deaths,
            )
    except KinshipError as e:
        fail(e)

    console.print(f"  [green]✓[/green] {len(result.full)} rows for {len(result.kin)} kin types\n")
    print_summary(result.summary, result.time_unit)

    if output is not None:
        written = save_result(result, output, format=ResultFormat(format.value))
        for path in written:
            console.print(f"\n  Saved to: [bold]{path}[/bold]")


@app.command("life-table")
def life_table(
    input_file: Path = typer.Argument(..., help="CSV life table with age, Lx and optionally year"),
    output: Path = typer.Option(Path("survival.csv"), "--output", "-o", help="Output survival CSV"),
    lx: str = typer.Option("Lx", "--lx", help="Column with person-years lived"),
):
    """
    Derive a survival schedule from person-years lived (Lx).

    Example:
        matkin life-table lt.csv --output survival.csv
    """
    from matkin.io import save_schedule
    from matkin.rates import survival_from_life_table

    if not input_file.exists():
        fail(FileNotFoundError(f"File not found: {input_file}"))

    frame = pd.read_csv(input_file)
    try:
        schedule = survival_from_life_table(frame, lx=lx)
    except KinshipError as e:
        fail(e)
    except KeyError as e:
        fail(ValueError(f"Missing column {e}"))

    save_schedule(schedule, output)
    console.print(
        f"  [green]✓[/green] Survival for {schedule.n_ages} ages x {schedule.n_years} year(s)"
    )
    console.print(f"  Saved to: [bold]{output}[/bold]")


@app.command()
def generate(
    ages: int = typer.Option(101, "--ages", "-a", help="Number of age classes"),
    start: int = typer.Option(1950, "--start", help="First year"),
    end: int = typer.Option(2020, "--end", help="Last year"),
    tfr_start: float = typer.Option(3.0, "--tfr-start", help="Total fertility in the first year"),
    tfr_end: float = typer.Option(1.6, "--tfr-end", help="Total fertility in the last year"),
    improvement: float = typer.Option(0.015, "--improvement", help="Annual mortality improvement"),
    seed: Optional[int] = typer.Option(None, "--seed", "-s", help="Random seed"),
    noise: float = typer.Option(0.0, "--noise", help="Year-level noise on the rates"),
    output_dir: Path = typer.Option(Path("."), "--output-dir", "-o", help="Directory for the CSVs"),
):
    """
    Generate synthetic time-varying survival, fertility and population.

    Example:
        matkin generate --ages 101 --start 1950 --end 2020 --output-dir rates/
    """
    from matkin.io import save_schedule
    from matkin.synthetic import SyntheticRates

    console.print(Panel.fit("[bold]Synthetic Rate Generation[/bold]", border_style="blue"))
    try:
        rates = SyntheticRates(
            n_ages=ages, start=start, end=end, tfr_start=tfr_start, tfr_end=tfr_end,
            improvement=improvement, noise=noise, seed=seed,
        )
        schedules = rates.schedules()
    except KinshipError as e:
        fail(e)

    output_dir.mkdir(parents=True, exist_ok=True)
    for name, schedule in schedules.items():
        path = save_schedule(schedule, output_dir / f"{name}.csv")
        console.print(f"  Saved {name}: [bold]{path}[/bold]")


@app.command("kin-types")
def kin_types():
    """List the kin types and how each is generated."""
    from matkin.network import KIN_ORDER

    table = Table(title="Kin Types", box=box.ROUNDED, title_style="bold cyan")
    table.add_column("Code", style="bold")
    table.add_column("Kin")
    table.add_column("Generation", justify="right")
    table.add_column("Born to")
    table.add_column("At Focal's birth from")

    for kin in KIN_ORDER:
        spec = kin.spec
        driver = getattr(spec.driver, "value", spec.driver) or "-"
        if spec.starts_from_pi:
            parent = "pi"
        else:
            parent = spec.initial_parent.value if spec.initial_parent else "-"
        table.add_row(kin.value, spec.label, str(spec.generation), driver, parent)

    console.print(table)


@app.command()
def version():
    """Show version information."""
    from matkin import __version__

    console.print(Panel(
        f"[bold cyan]matkin[/bold cyan] v{__version__}\n\n"
        "One-sex matrix kinship models with stable\n"
        "and time-varying rates.",
        border_style="cyan"
    ))


# =============================================================================
# ENTRY POINT
# =============================================================================

def main():
    """Main entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
