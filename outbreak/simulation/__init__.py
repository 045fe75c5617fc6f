"""Per-player sessions and the registry that ticks them."""

from .registry import SessionRegistry
from .session import PlayerSession

__all__ = ["PlayerSession", "SessionRegistry"]
