"""
Engine tuning configuration.

Every balance constant lives here instead of in the engine. Values can be
overridden from a JSON file; missing keys fall back to the defaults.
"""

import json
import logging
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class EngineTuning(BaseModel):
    """Balance constants for sessions and the registry."""

    # XP curve: xp_to_next(level) = round(base_xp * growth ** (level - 1))
    base_xp: int = Field(default=140, gt=0)
    xp_growth_rate: float = Field(default=1.18, gt=0)

    # Capital
    capital_per_xp: float = 0.5
    capital_bonus_multiplier: float = 1.15   # with the capital_bonus flag
    level_up_capital: float = 50.0

    # XP rewards
    direct_infection_xp: float = 25.0
    reapply_xp: float = 5.0
    spread_infection_xp: float = 30.0
    exposure_xp_per_progress: float = 20.0   # XP per full unit of exposure gained

    # Passive XP pulse
    passive_xp_interval_ms: float = 30_000
    passive_xp_boost_factor: float = 0.6     # interval multiplier with xp_pulse_boost
    passive_xp_min: int = 3
    passive_xp_max: int = 8
    passive_windfall_chance: float = 0.2
    passive_windfall_min: int = 15
    passive_windfall_max: int = 45

    # World events
    world_event_cooldown_ms: float = 45_000
    world_event_chance: float = 0.03
    who_dampener_factor: float = 0.5
    containment_min: float = 0.05
    containment_max: float = 0.2
    containment_floor: float = 0.02          # infections at or below are wiped
    av_spoofing_factor: float = 0.5          # containment severity with av_spoofing
    windfall_min: int = 40
    windfall_max: int = 120
    world_xp: float = 30.0
    injection_min: float = 0.1
    injection_max: float = 0.3

    # Exposure decay: (base + security_weight * security) per second
    decay_base: float = 0.0005
    decay_security_weight: float = 0.001
    decay_stealth_weight: float = 0.8
    decay_resilience_weight: float = 0.4
    av_decay_slow_factor: float = 0.7
    decay_epsilon: float = 0.0001
    exposure_cap: float = 0.999

    # Infection growth
    intensity_growth: float = 0.1            # basePower fraction per second
    reapply_boost: float = 0.25              # basePower fraction per reapply

    # Bookkeeping
    event_log_limit: int = Field(default=60, gt=0)
    snapshot_event_count: int = Field(default=35, ge=0)
    tick_interval_ms: int = Field(default=1000, gt=0)


DEFAULT_TUNING = EngineTuning()


def load_tuning(path: Path | str | None = None) -> EngineTuning:
    """Load tuning from a JSON file, or return defaults if not found."""
    if path is None:
        return EngineTuning()

    path = Path(path)
    if not path.exists():
        return EngineTuning()

    try:
        with open(path, "r", encoding="utf-8") as f:
            saved = json.load(f)
        if not isinstance(saved, dict):
            raise ValueError("tuning file must hold a JSON object")
        merged = DEFAULT_TUNING.model_dump()
        merged.update(saved)
        return EngineTuning.model_validate(merged)
    except (IOError, ValueError) as e:
        logger.warning(f"Ignoring unreadable tuning file {path}: {e}")
        return EngineTuning()


def save_tuning(tuning: EngineTuning, path: Path | str) -> bool:
    """Save tuning to a JSON file. Returns True on success."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(tuning.model_dump(), f, indent=2)
        return True
    except IOError:
        return False
