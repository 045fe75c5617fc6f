"""Session state models, event bus and progression storage."""

from .schema import (
    Attributes,
    AttributeDelta,
    AvBypassRecord,
    BypassResult,
    ChallengeView,
    Flag,
    Infection,
    InfectionResult,
    InfectionStatus,
    PendingAvChallenge,
    PlayerConfig,
    PlayerSummary,
    ProgressionState,
    ProgressionSync,
    SessionSnapshot,
    XpGrant,
    clamp,
    clamp01,
    parse_number,
)
from .event_bus import EventBus, EventType, SessionEvent
from .store import JsonProgressionStore, MemoryProgressionStore, ProgressionStore

__all__ = [
    # Schema
    "Attributes",
    "AttributeDelta",
    "AvBypassRecord",
    "BypassResult",
    "ChallengeView",
    "Flag",
    "Infection",
    "InfectionResult",
    "InfectionStatus",
    "PendingAvChallenge",
    "PlayerConfig",
    "PlayerSummary",
    "ProgressionState",
    "ProgressionSync",
    "SessionSnapshot",
    "XpGrant",
    "clamp",
    "clamp01",
    "parse_number",
    # Event bus
    "EventBus",
    "EventType",
    "SessionEvent",
    # Store
    "ProgressionStore",
    "JsonProgressionStore",
    "MemoryProgressionStore",
]
