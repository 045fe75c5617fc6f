"""
Outbreak: a per-player contagion simulation with an RPG progression economy.

Each player owns a PlayerSession; a SessionRegistry owns the sessions and
ticks them in the background.
"""

from .config import DEFAULT_TUNING, EngineTuning, load_tuning, save_tuning
from .errors import SimulationError
from .simulation import PlayerSession, SessionRegistry

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_TUNING",
    "EngineTuning",
    "load_tuning",
    "save_tuning",
    "SimulationError",
    "PlayerSession",
    "SessionRegistry",
    "__version__",
]
