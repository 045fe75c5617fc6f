"""
Progression storage abstraction.

The engine never persists anything itself. A store is the persistence
collaborator that SessionRegistry.flush_progression() writes through, using
the session's dirty-flag handshake.
"""

import json
import logging
import re
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from .schema import ProgressionState

logger = logging.getLogger(__name__)


@runtime_checkable
class ProgressionStore(Protocol):
    """
    Storage interface for per-player progression rows.

    Implementations:
    - JsonProgressionStore: File-based persistence
    - MemoryProgressionStore: In-memory storage (testing)
    """

    def save(self, player_id: str, state: ProgressionState) -> None:
        """Persist a progression row. Raises on failure."""
        ...

    def load(self, player_id: str) -> ProgressionState | None:
        """Load a progression row. Returns None if not found."""
        ...

    def delete(self, player_id: str) -> bool:
        """Delete a progression row. Returns True if deleted."""
        ...


def _safe_filename(player_id: str) -> str:
    return re.sub(r"[^a-zA-Z0-9_-]", "_", player_id)


class JsonProgressionStore:
    """
    One JSON file per player.

    The previous save is kept as a .bak beside the new one.
    """

    def __init__(self, data_dir: Path | str = "progression"):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, player_id: str) -> Path:
        return self.data_dir / f"{_safe_filename(player_id)}.json"

    def save(self, player_id: str, state: ProgressionState) -> None:
        path = self._path(player_id)

        if path.exists():
            backup = path.with_suffix(".json.bak")
            backup.write_text(path.read_text())

        path.write_text(state.model_dump_json(indent=2))

    def load(self, player_id: str) -> ProgressionState | None:
        path = self._path(player_id)
        if not path.exists():
            return None

        try:
            data = json.loads(path.read_text())
            return ProgressionState.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Unreadable progression for {player_id}: {e}")
            return None

    def delete(self, player_id: str) -> bool:
        path = self._path(player_id)
        if path.exists():
            path.unlink()
            return True
        return False


class MemoryProgressionStore:
    """
    In-memory progression storage for testing.

    Stores deep copies so later session mutations never leak into a save.
    """

    def __init__(self):
        self.rows: dict[str, ProgressionState] = {}
        self.save_count = 0

    def save(self, player_id: str, state: ProgressionState) -> None:
        self.rows[player_id] = state.model_copy(deep=True)
        self.save_count += 1

    def load(self, player_id: str) -> ProgressionState | None:
        row = self.rows.get(player_id)
        return row.model_copy(deep=True) if row else None

    def delete(self, player_id: str) -> bool:
        if player_id in self.rows:
            del self.rows[player_id]
            return True
        return False

    def clear(self) -> None:
        """Clear all rows (test utility)."""
        self.rows.clear()
