"""
Per-session event bus.

Each PlayerSession owns one bus. Emitted events land in a bounded history
(the session's event feed) and are pushed to any subscribers. Sessions never
share a bus, so one player's listeners never see another player's events.

Usage:
    bus = EventBus(history_limit=60)
    bus.on(EventType.INFECTED, my_handler)
    bus.emit(EventType.INFECTED, timestamp=now, country="Brazil", intensity=0.7)

    def my_handler(event: SessionEvent):
        print(f"{event.data['country']} infected!")
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class EventType(Enum):
    """Events a session can record."""

    # Configuration
    CONFIG_UPDATED = "config.updated"
    PROGRESSION_RESTORED = "progression.restored"

    # Infection
    INFECTED = "infection.infected"
    SPREAD = "infection.spread"
    INTENSIFIED = "infection.intensified"
    INFECTION_BLOCKED = "infection.blocked"
    EXPOSURE_PROGRESS = "exposure.progress"

    # Progression
    XP_GAINED = "xp.gained"
    LEVEL_UP = "xp.level_up"
    PASSIVE_XP = "xp.passive"
    SKILL_UNLOCKED = "skill.unlocked"
    COMPANY_PURCHASED = "company.purchased"
    EMPLOYEE_HIRED = "employee.hired"

    # AV bypass
    AV_CHALLENGE_ISSUED = "av.challenge_issued"
    AV_BYPASSED = "av.bypassed"
    AV_BYPASS_FAILED = "av.bypass_failed"

    # World events
    CONTAINMENT = "world.containment"
    CAPITAL_WINDFALL = "world.windfall"
    WORLD_XP = "world.xp"
    EXPOSURE_INJECTED = "world.exposure_injected"

    # Self-healing
    ENTRY_DROPPED = "state.entry_dropped"


@dataclass
class SessionEvent:
    """
    Event record for the session feed.

    Attributes:
        type: The event type
        timestamp: Session time in epoch milliseconds
        data: Event-specific payload
    """

    type: EventType
    timestamp: float
    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Flatten into the feed shape: type and timestamp beside the payload."""
        return {"type": self.type.value, "timestamp": self.timestamp, **self.data}

    def __str__(self) -> str:
        return f"[{self.type.value}] {self.data}"


EventHandler = Callable[[SessionEvent], None]


class EventBus:
    """
    Synchronous event bus with bounded history.

    Listeners are called immediately on emit(). A failing listener is logged
    and skipped; it never interrupts the emitting operation.
    """

    def __init__(self, history_limit: int = 60):
        self._listeners: dict[EventType, list[EventHandler]] = {}
        self._history: list[SessionEvent] = []
        self._history_limit = max(1, int(history_limit))

    def on(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe to an event type."""
        if event_type not in self._listeners:
            self._listeners[event_type] = []
        if handler not in self._listeners[event_type]:
            self._listeners[event_type].append(handler)

    def off(self, event_type: EventType, handler: EventHandler) -> None:
        """Unsubscribe from an event type."""
        if event_type in self._listeners and handler in self._listeners[event_type]:
            self._listeners[event_type].remove(handler)

    def emit(self, event_type: EventType, timestamp: float, **data) -> SessionEvent:
        """
        Record an event and notify subscribers.

        Returns:
            The emitted SessionEvent
        """
        event = SessionEvent(type=event_type, timestamp=timestamp, data=data)

        self._history.append(event)
        if len(self._history) > self._history_limit:
            self._history = self._history[-self._history_limit :]

        for handler in self._listeners.get(event_type, []):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Error in handler for {event_type.value}")

        return event

    def clear(self) -> None:
        """Clear all listeners."""
        self._listeners.clear()

    def get_history(self, event_type: EventType | None = None) -> list[SessionEvent]:
        """
        Get recent event history, oldest first.

        Args:
            event_type: Filter by type, or None for all events
        """
        if event_type is None:
            return list(self._history)
        return [e for e in self._history if e.type == event_type]

    def recent(self, count: int) -> list[SessionEvent]:
        """The last `count` events, oldest first."""
        if count <= 0:
            return []
        return self._history[-count:]

    def listener_count(self, event_type: EventType) -> int:
        return len(self._listeners.get(event_type, []))

    @property
    def history_limit(self) -> int:
        return self._history_limit
