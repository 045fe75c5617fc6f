"""
Command-line interface for the outbreak engine.

Runs a headless simulation on a virtual clock and renders the final snapshot.

Usage:
    outbreak --country Brazil --seconds 120
    outbreak --country Brazil --force
    outbreak --country India --country Brazil --seed 7 --save-dir saves
"""

import argparse
import logging
import random

from rich.console import Console
from rich.table import Table

from ..catalog import default_country_graph
from ..config import load_tuning
from ..errors import SimulationError
from ..simulation import SessionRegistry
from ..state.schema import SessionSnapshot
from ..state.store import JsonProgressionStore

console = Console()
logger = logging.getLogger(__name__)

THEME = {
    "primary": "red",
    "secondary": "white",
    "accent": "green",
    "warning": "yellow",
    "dim": "bright_black",
}


class VirtualClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start_ms: float = 0.0):
        self.now_ms = start_ms

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, seconds: float) -> float:
        self.now_ms += seconds * 1000
        return self.now_ms


def render_snapshot(snapshot: SessionSnapshot) -> None:
    """Print a session snapshot as rich tables."""
    p = snapshot.progression

    summary = Table(
        title=f"[bold {THEME['primary']}]{snapshot.player_id}[/bold {THEME['primary']}]",
        show_header=False,
        box=None,
    )
    summary.add_column("Key", style=THEME["dim"])
    summary.add_column("Value", style=THEME["secondary"])
    summary.add_row("Base power", f"{snapshot.base_power:.3f}")
    summary.add_row("Level", f"{p.level} ({p.xp}/{p.xp_to_next} XP)")
    summary.add_row("Skill points", f"{p.skill_points}")
    summary.add_row("Capital", f"{p.capital:.2f}")
    summary.add_row("Total infected", f"{snapshot.total_infected}")
    summary.add_row("Active", f"{snapshot.active_infections}")
    console.print(summary)

    if snapshot.infected_countries:
        table = Table(title="Infected", box=None)
        table.add_column("Country", style=THEME["primary"])
        table.add_column("Intensity", justify="right")
        table.add_column("Source", style=THEME["dim"])
        for view in snapshot.infected_countries:
            table.add_row(view.country, f"{view.intensity:.3f}", view.source)
        console.print(table)

    if snapshot.pending_exposures:
        table = Table(title="Exposed", box=None)
        table.add_column("Country", style=THEME["warning"])
        table.add_column("Progress", justify="right")
        for view in snapshot.pending_exposures:
            table.add_row(view.country, f"{view.progress:.1%}")
        console.print(table)

    for challenge in snapshot.pending_challenges:
        console.print(
            f"[{THEME['warning']}]{challenge.vendor}[/{THEME['warning']}] "
            f"[{THEME['dim']}]({challenge.country}, tier {challenge.tier}, "
            f"{challenge.reward_xp} XP)[/{THEME['dim']}]\n  {challenge.prompt}"
        )


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Outbreak - contagion simulation")
    parser.add_argument("--player", "-p", default="local", help="Player id")
    parser.add_argument(
        "--country", "-c",
        action="append",
        default=[],
        help="Country to infect at the start (repeatable)",
    )
    parser.add_argument("--quality", type=float, default=0.5, help="Malware quality 0-1")
    parser.add_argument("--seconds", type=float, default=60.0, help="Simulated duration")
    parser.add_argument("--step", type=float, default=1.0, help="Seconds per tick")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--tuning", default=None, help="JSON file of balance overrides")
    parser.add_argument("--save-dir", default=None, help="Persist progression here")
    parser.add_argument("--force", action="store_true", help="Skip AV gates for the seed countries")
    parser.add_argument("--list-countries", action="store_true", help="List countries and exit")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(message)s',
    )

    if args.list_countries:
        table = Table(box=None)
        table.add_column("Country", style=THEME["secondary"])
        table.add_column("Region", style=THEME["dim"])
        table.add_column("Security", justify="right")
        table.add_column("Antivirus", style=THEME["warning"])
        for country in default_country_graph():
            av = country.antivirus
            table.add_row(
                country.name,
                country.region,
                f"{country.security:.2f}",
                f"{av.vendor} (tier {av.tier})" if av else "",
            )
        console.print(table)
        return 0

    if args.step <= 0:
        parser.error("--step must be positive")

    clock = VirtualClock()
    store = JsonProgressionStore(args.save_dir) if args.save_dir else None
    registry = SessionRegistry(
        tuning=load_tuning(args.tuning),
        rng_factory=lambda _player: random.Random(args.seed),
        clock=clock,
        store=store,
        autostart=False,
    )

    session = registry.upsert_player(args.player, {"malware_quality": args.quality})
    for country in args.country or ["Brazil"]:
        try:
            result = session.start_infection(country, force=args.force)
        except SimulationError as e:
            console.print(f"[{THEME['primary']}]{e}[/{THEME['primary']}]")
            return 1
        if result.blocked:
            console.print(
                f"[{THEME['warning']}]{result.country} is AV-protected; "
                f"solve the challenge or pass --force[/{THEME['warning']}]"
            )

    elapsed = 0.0
    while elapsed < args.seconds:
        elapsed += args.step
        clock.advance(args.step)
        registry.tick_all()

    render_snapshot(session.get_snapshot())

    if store is not None:
        saved = registry.flush_progression()
        if saved:
            console.print(f"[{THEME['dim']}]Saved progression to {args.save_dir}[/{THEME['dim']}]")

    return 0
