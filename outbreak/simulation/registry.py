"""
Session registry and background tick scheduler.

The registry owns every PlayerSession keyed by player id. A single daemon
thread ticks each live session at a fixed interval; callers may also tick a
session on demand before reading it. Ticks are idempotent against stale
timestamps, so both paths interleave safely.

Usage:
    registry = SessionRegistry(store=JsonProgressionStore("saves"))
    session = registry.upsert_player("alice", {"malware_quality": 0.7})
    session.start_infection("Brazil")
    ...
    registry.flush_progression()
    registry.stop()
"""

import logging
import random
import threading
from typing import Callable

from ..catalog import default_country_graph, default_progression_catalog
from ..catalog.graph import CountryGraph
from ..catalog.progression import ProgressionCatalog
from ..config import EngineTuning
from ..errors import InvalidPlayerError
from ..state.schema import PlayerConfig, PlayerSummary
from ..state.store import ProgressionStore
from .session import PlayerSession

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Keyed collection of sessions plus the shared scheduler.

    Args:
        countries: Country graph shared (read-only) by every session
        catalog: Progression catalog shared (read-only) by every session
        tuning: Balance constants for new sessions
        tick_interval_ms: Scheduler period, defaults to tuning.tick_interval_ms
        rng_factory: Builds each new session's random source from its player id
        clock: Epoch-millisecond clock for sessions and the scheduler
        store: Progression store used to restore new sessions and to flush
        autostart: (Re)start the scheduler on every upsert_player() call
    """

    def __init__(
        self,
        countries: CountryGraph | None = None,
        catalog: ProgressionCatalog | None = None,
        tuning: EngineTuning | None = None,
        tick_interval_ms: float | None = None,
        rng_factory: Callable[[str], random.Random] | None = None,
        clock: Callable[[], float] | None = None,
        store: ProgressionStore | None = None,
        autostart: bool = True,
    ):
        self.countries = countries if countries is not None else default_country_graph()
        self.catalog = catalog if catalog is not None else default_progression_catalog()
        self.tuning = tuning or EngineTuning()
        self.tick_interval_ms = float(tick_interval_ms or self.tuning.tick_interval_ms)
        self.rng_factory = rng_factory
        self.clock = clock
        self.store = store
        self.autostart = autostart

        self._sessions: dict[str, PlayerSession] = {}
        self._lock = threading.RLock()
        self._thread: threading.Thread | None = None
        self._stop_event: threading.Event | None = None

    # -------------------------------------------------------------------------
    # Sessions
    # -------------------------------------------------------------------------

    def upsert_player(
        self, player_id: str, config: PlayerConfig | dict | None = None
    ) -> PlayerSession:
        """
        Create the player's session on first reference, else merge config.

        Merging never resets accumulated state. An embedded progression
        snapshot is applied silently.

        Raises:
            InvalidPlayerError: player_id is empty
        """
        if player_id is None or not str(player_id).strip():
            raise InvalidPlayerError("player_id is required to register a player")
        player_id = str(player_id)

        with self._lock:
            session = self._sessions.get(player_id)
            created = session is None
            if created:
                session = self._create_session(player_id, config)
                self._sessions[player_id] = session
            # Under the lock so a concurrent remove_player can't stop it after
            if self.autostart:
                self._start_locked()

        if created:
            logger.info(f"Registered player {player_id}")
            return session

        if isinstance(config, PlayerConfig):
            config = config.model_dump(exclude_none=True)
        config = config or {}
        session.update_config(config)
        if config.get("progression") is not None:
            session.apply_progression(config["progression"], silent=True)
        return session

    def _create_session(
        self, player_id: str, config: PlayerConfig | dict | None
    ) -> PlayerSession:
        session = PlayerSession(
            player_id,
            config,
            countries=self.countries,
            catalog=self.catalog,
            tuning=self.tuning,
            rng=self.rng_factory(player_id) if self.rng_factory else None,
            clock=self.clock,
        )

        # A snapshot handed in with the config wins over the stored row
        if isinstance(config, PlayerConfig):
            has_snapshot = config.progression is not None
        else:
            has_snapshot = bool(config) and config.get("progression") is not None

        if self.store is not None and not has_snapshot:
            saved = self.store.load(player_id)
            if saved is not None:
                session.apply_progression(saved, silent=True)
                logger.info(f"Restored saved progression for {player_id} (level {saved.level})")
        return session

    def get_player(self, player_id: str) -> PlayerSession | None:
        with self._lock:
            return self._sessions.get(player_id)

    def remove_player(self, player_id: str) -> bool:
        """Drop a session. Returns False if there was none."""
        with self._lock:
            removed = self._sessions.pop(player_id, None) is not None
            thread = None if self._sessions else self._signal_stop_locked()

        if removed:
            logger.info(f"Removed player {player_id}")
        self._join_scheduler(thread)
        return removed

    def list_players(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def get_player_summaries(self) -> list[PlayerSummary]:
        return [session.get_summary() for session in self._live_sessions()]

    def _live_sessions(self) -> list[PlayerSession]:
        with self._lock:
            return list(self._sessions.values())

    def __contains__(self, player_id: object) -> bool:
        with self._lock:
            return player_id in self._sessions

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    # -------------------------------------------------------------------------
    # Ticking
    # -------------------------------------------------------------------------

    def tick_all(self, now: float | None = None) -> int:
        """
        Tick every live session. Returns how many advanced.

        One session failing is logged and skipped; the rest still tick.
        """
        if now is None and self.clock is not None:
            now = self.clock()

        advanced = 0
        for session in self._live_sessions():
            try:
                if session.tick(now):
                    advanced += 1
            except Exception:
                logger.exception(f"Tick failed for player {session.player_id}")
        return advanced

    def start(self) -> bool:
        """Start the background scheduler. No-op if already running."""
        with self._lock:
            return self._start_locked()

    def _start_locked(self) -> bool:
        if self._thread and self._thread.is_alive():
            return False

        # One event per thread: stopping an old thread never reaches its replacement
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._run,
            args=(stop_event,),
            name="OutbreakScheduler",
            daemon=True,
        )
        self._thread = thread
        self._stop_event = stop_event
        thread.start()

        logger.info(f"Started tick scheduler ({self.tick_interval_ms:.0f} ms)")
        return True

    def stop(self) -> None:
        """Stop the scheduler and wait for it to exit. No-op if stopped."""
        with self._lock:
            thread = self._signal_stop_locked()
        self._join_scheduler(thread)

    def _signal_stop_locked(self) -> threading.Thread | None:
        """Detach the running thread and set its event. Caller holds the lock."""
        thread, stop_event = self._thread, self._stop_event
        self._thread = None
        self._stop_event = None
        if stop_event is not None:
            stop_event.set()
        return thread

    def _join_scheduler(self, thread: threading.Thread | None) -> None:
        if thread is None:
            return
        if thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=2)
        logger.info("Stopped tick scheduler")

    def is_running(self) -> bool:
        thread = self._thread
        return bool(thread and thread.is_alive())

    def _run(self, stop_event: threading.Event) -> None:
        """Scheduler loop running in a background thread."""
        interval = self.tick_interval_ms / 1000
        while not stop_event.wait(interval):
            self.tick_all()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def flush_progression(self, store: ProgressionStore | None = None) -> list[str]:
        """
        Save every dirty session through the store.

        A failed save leaves that session dirty for the next flush.

        Returns:
            Player ids that were saved
        """
        store = store or self.store
        if store is None:
            raise ValueError("No progression store configured")

        saved: list[str] = []
        for session in self._live_sessions():
            if not session.is_progression_dirty():
                continue
            state = session.get_persistable_progression()
            try:
                store.save(session.player_id, state)
            except Exception:
                logger.exception(f"Failed saving progression for {session.player_id}")
                session.mark_progression_dirty()
                continue
            session.mark_progression_saved()
            saved.append(session.player_id)

        if saved:
            logger.debug(f"Flushed progression for {len(saved)} player(s)")
        return saved
