"""
Pytest fixtures for outbreak engine tests.

Provides a tiny country graph, quiet tuning, a fixed clock and scripted
random sources so sessions behave deterministically.
"""

import random
import sys
from pathlib import Path

import pytest

# Make the package importable without installing it
sys.path.insert(0, str(Path(__file__).parent.parent))

from outbreak.catalog import default_progression_catalog
from outbreak.catalog.graph import CountryGraph
from outbreak.config import EngineTuning
from outbreak.simulation import PlayerSession
from outbreak.state.store import MemoryProgressionStore


class ScriptedRandom(random.Random):
    """
    random.Random whose random() replays a script, then falls back to a seed.

    uniform() is built on random(), so scripted values drive it too.
    randint()/choice() use the seeded generator.
    """

    def __init__(self, values=(), seed: int = 1234):
        super().__init__(seed)
        self.script = list(values)

    def random(self) -> float:
        if self.script:
            return self.script.pop(0)
        return super().random()

    # Keeps randint()/choice() on getrandbits instead of random()
    def getrandbits(self, k: int) -> int:
        return super().getrandbits(k)


class FakeClock:
    """Mutable epoch-millisecond clock."""

    def __init__(self, now_ms: float = 0.0):
        self.now_ms = now_ms

    def __call__(self) -> float:
        return self.now_ms


AB_COUNTRIES = {
    "A": {
        "code": "AA",
        "neighbors": ["B"],
        "security": 0.2,
        "connectivity": 0.8,
        "population": 0.5,
    },
    "B": {
        "code": "BB",
        "neighbors": [],
        "security": 0.3,
        "connectivity": 0.6,
        "population": 0.4,
    },
}


@pytest.fixture
def ab_graph():
    """Two countries, A -> B, neither protected."""
    return CountryGraph(AB_COUNTRIES)


@pytest.fixture
def guarded_graph():
    """Same shape as ab_graph, but B sits behind an AV profile."""
    countries = dict(AB_COUNTRIES)
    countries["B"] = {
        **AB_COUNTRIES["B"],
        "antivirus": {"vendor": "Test Shield", "tier": 2, "difficulty": 0.6},
    }
    return CountryGraph(countries)


@pytest.fixture
def quiet_tuning():
    """No world events and no passive XP within any test's timeframe."""
    return EngineTuning(
        world_event_chance=0.0,
        passive_xp_interval_ms=10**12,
    )


@pytest.fixture
def catalog():
    """The packaged skill and company catalog."""
    return default_progression_catalog()


@pytest.fixture
def clock():
    """Clock pinned at t=0 until a test moves it."""
    return FakeClock(0.0)


@pytest.fixture
def memory_store():
    """In-memory progression store for testing."""
    return MemoryProgressionStore()


@pytest.fixture
def make_session(ab_graph, catalog, quiet_tuning, clock):
    """Factory for sessions on the A/B graph with deterministic inputs."""

    def _make(player_id="player-1", config=None, **overrides):
        kwargs = {
            "countries": ab_graph,
            "catalog": catalog,
            "tuning": quiet_tuning,
            "rng": ScriptedRandom(),
            "clock": clock,
        }
        kwargs.update(overrides)
        return PlayerSession(player_id, config, **kwargs)

    return _make


@pytest.fixture
def session(make_session):
    """Fresh session with default quality and attributes (all 0.5)."""
    return make_session()


@pytest.fixture
def scripted_rng():
    """Factory for ScriptedRandom instances."""
    return ScriptedRandom
