"""
Game systems for outbreak sessions.

Each system holds one concern of the rules. PlayerSession owns the state and
delegates to these.
"""

from .av_challenge import PROMPT_TEMPLATES, build_av_challenge, default_reward_xp
from .bonuses import BonusSource, collect_bonus_sources, fold_attributes
from .progression import ProgressionSystem, xp_for_level
from .world_events import WorldEventKind, choose_world_event, world_event_chance

__all__ = [
    "PROMPT_TEMPLATES",
    "build_av_challenge",
    "default_reward_xp",
    "BonusSource",
    "collect_bonus_sources",
    "fold_attributes",
    "ProgressionSystem",
    "xp_for_level",
    "WorldEventKind",
    "choose_world_event",
    "world_event_chance",
]
