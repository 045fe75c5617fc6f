"""
Random world events.

Which event fires is a pure function of one drawn value and the session's
current state. The session owns the draws and applies the outcome.

Thresholds on the drawn value in [0, 1):
    [0.00, 0.35)  containment (needs active infections)
    [0.35, 0.60)  capital windfall
    [0.60, 0.80)  flat XP grant
    [0.80, 1.00)  exposure injection
Containment with nothing infected falls through to an exposure injection.
"""

from enum import Enum

CONTAINMENT_CEILING = 0.35
WINDFALL_CEILING = 0.60
XP_CEILING = 0.80


class WorldEventKind(str, Enum):
    CONTAINMENT = "containment"
    CAPITAL_WINDFALL = "capital_windfall"
    XP_GRANT = "xp_grant"
    EXPOSURE_INJECTION = "exposure_injection"


def choose_world_event(draw: float, has_infections: bool) -> WorldEventKind:
    """Pick the event for a drawn value."""
    if draw < CONTAINMENT_CEILING:
        if has_infections:
            return WorldEventKind.CONTAINMENT
        return WorldEventKind.EXPOSURE_INJECTION
    if draw < WINDFALL_CEILING:
        return WorldEventKind.CAPITAL_WINDFALL
    if draw < XP_CEILING:
        return WorldEventKind.XP_GRANT
    return WorldEventKind.EXPOSURE_INJECTION


def world_event_chance(base_chance: float, dampened: bool, dampener_factor: float) -> float:
    """Per-tick trigger probability, reduced when the WHO dampener is unlocked."""
    return base_chance * dampener_factor if dampened else base_chance
