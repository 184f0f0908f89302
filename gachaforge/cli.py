"""Command line helpers for gachaforge."""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from random import Random

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .app import GachaApp
from .config import GachaConfig
from .diagnostics.rarity_simulator import RaritySimulator
from .domain.pity import PityTracker
from .domain.rarity import DEFAULT_RARITY_TABLE
from .loaders import validate_pool_file
from .validators import validate_app

console = Console()

RARITY_STYLES = {"grey": "grey58", "blue": "blue", "purple": "purple", "gold": "gold1", "red": "red"}


def configure_logging() -> None:
    level = os.getenv("GACHAFORGE_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def run_simulator() -> None:
    parser = argparse.ArgumentParser(description="gachaforge rarity simulator")
    parser.add_argument("--draws", type=int, default=10_000, help="Number of committed draws to simulate")
    parser.add_argument(
        "--strategy",
        choices=("best", "first", "random"),
        default="best",
        help="Which of the offered candidates the simulated player keeps",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible runs")
    args = parser.parse_args()
    configure_logging()

    config = GachaConfig.from_env()
    table = DEFAULT_RARITY_TABLE.with_weights(config.draw.rarity_weights)
    pity = PityTracker(table, config.pity)
    seed = args.seed if args.seed is not None else config.rng_seed
    simulator = RaritySimulator(
        pity,
        candidates_per_draw=config.draw.candidates_per_draw,
        rng=Random(seed) if seed is not None else Random(),
    )
    result = simulator.simulate(draws=args.draws, strategy=args.strategy)

    probabilities = table.probabilities()
    report = Table(show_header=True, header_style="bold")
    report.add_column("Rarity")
    report.add_column("Base odds", justify="right")
    report.add_column("Offered", justify="right")
    report.add_column("Kept", justify="right")
    report.add_column("Kept share", justify="right")
    for tier in table:
        report.add_row(
            _styled(tier.rarity.value, tier.display_class),
            f"{probabilities[tier.rarity]:.2%}",
            str(result.offered[tier.rarity]),
            str(result.committed[tier.rarity]),
            f"{result.share(tier.rarity):.2%}",
        )
    console.print(f"[bold]Simulated {result.draws} draws[/bold] (strategy: {args.strategy})")
    console.print(report)
    console.print(f"Draws started under forced pity: {result.forced}")
    console.print(f"Longest run without a mythic: {result.longest_mythic_drought}")


def run_validate() -> None:
    parser = argparse.ArgumentParser(description="gachaforge validator")
    parser.add_argument(
        "--pool",
        action="append",
        default=[],
        help="Path to a pool JSON file to validate (repeatable)",
    )
    args = parser.parse_args()
    configure_logging()

    failed = False
    for path in args.pool:
        errors = validate_pool_file(Path(path))
        if errors:
            failed = True
            console.print(f"[red]Pool file {escape(path)} has errors:[/red]")
            for err in errors:
                console.print(f"- {escape(err)}")
        else:
            console.print(f"Pool file {escape(path)} is valid")

    try:
        app = GachaApp(GachaConfig.from_env())
    except ValueError as exc:
        issues = [str(exc)]
    else:
        issues = validate_app(app)
        asyncio.run(app.aclose())
    if issues:
        console.print("[red]Configuration errors:[/red]")
        for issue in issues:
            console.print(f"- {escape(issue)}")
        sys.exit(1)
    if failed:
        sys.exit(1)
    console.print("Configuration is valid")


def _styled(label: str, display_class: str) -> str:
    style = RARITY_STYLES.get(display_class)
    return f"[{style}]{label}[/]" if style else label
