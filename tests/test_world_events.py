"""Tests for random world events."""

import pytest

from outbreak.config import EngineTuning
from outbreak.state.event_bus import EventType
from outbreak.systems.world_events import (
    WorldEventKind,
    choose_world_event,
    world_event_chance,
)


class TestChooseWorldEvent:
    """Event selection from a drawn value."""

    @pytest.mark.parametrize("draw,expected", [
        (0.0, WorldEventKind.CONTAINMENT),
        (0.34, WorldEventKind.CONTAINMENT),
        (0.35, WorldEventKind.CAPITAL_WINDFALL),
        (0.59, WorldEventKind.CAPITAL_WINDFALL),
        (0.6, WorldEventKind.XP_GRANT),
        (0.79, WorldEventKind.XP_GRANT),
        (0.8, WorldEventKind.EXPOSURE_INJECTION),
        (0.99, WorldEventKind.EXPOSURE_INJECTION),
    ])
    def test_thresholds(self, draw, expected):
        assert choose_world_event(draw, has_infections=True) == expected

    def test_containment_needs_infections(self):
        """With nothing infected, containment becomes an injection."""
        assert choose_world_event(0.1, has_infections=False) == WorldEventKind.EXPOSURE_INJECTION


class TestWorldEventChance:

    def test_base(self):
        assert world_event_chance(0.03, False, 0.5) == 0.03

    def test_dampened(self):
        """The WHO dampener halves the chance."""
        assert world_event_chance(0.03, True, 0.5) == pytest.approx(0.015)


class TestSessionWorldEvents:
    """World events applied to a live session."""

    @pytest.fixture
    def eventful(self):
        return EngineTuning(
            world_event_chance=1.0,
            world_event_cooldown_ms=45000,
            passive_xp_interval_ms=10**12,
        )

    def test_cooldown(self, make_session, eventful, scripted_rng):
        """Nothing fires before the cooldown has elapsed."""
        rng = scripted_rng([0.0, 0.5])
        session = make_session(tuning=eventful, rng=rng)

        session.tick(44999)
        assert rng.script == [0.0, 0.5]
        assert session.progression.capital == 0

    def test_capital_windfall(self, make_session, eventful, scripted_rng):
        session = make_session(tuning=eventful, rng=scripted_rng([0.0, 0.5]))
        session.tick(45000)

        assert 40 <= session.progression.capital <= 120
        types = [e["type"] for e in session.events]
        assert EventType.CAPITAL_WINDFALL.value in types
        assert session.is_progression_dirty()

    def test_world_xp(self, make_session, eventful, scripted_rng):
        session = make_session(tuning=eventful, rng=scripted_rng([0.0, 0.7]))
        session.tick(45000)

        assert session.progression.xp == 30
        assert EventType.WORLD_XP.value in [e["type"] for e in session.events]

    def test_exposure_injection(self, make_session, eventful, scripted_rng):
        """Injection adds 0.1-0.3 exposure to an uninfected country."""
        session = make_session(tuning=eventful, rng=scripted_rng([0.0, 0.9, 0.5]))
        session.tick(45000)

        assert len(session.exposure) == 1
        (progress,) = session.exposure.values()
        # 0.2 injected, then 45 s of decay
        assert 0.15 < progress < 0.2

    def test_containment_reduces_intensity(self, make_session, eventful, scripted_rng):
        """Containment cuts each infection by 0.05-0.2."""
        session = make_session(tuning=eventful, rng=scripted_rng([0.0, 0.1, 1.0]))
        session.start_infection("A")

        seen = []
        session.bus.on(
            EventType.CONTAINMENT,
            lambda event: seen.append(session.infections["A"].intensity),
        )
        session.tick(45000)

        assert seen == [pytest.approx(0.5)]

    def test_av_spoofing_softens_containment(self, make_session, eventful, scripted_rng):
        """av_spoofing halves the reduction."""
        session = make_session(tuning=eventful, rng=scripted_rng([0.0, 0.1, 1.0]))
        session.apply_progression({"flags": ["av_spoofing"]})
        session.start_infection("A")

        seen = []
        session.bus.on(
            EventType.CONTAINMENT,
            lambda event: seen.append(session.infections["A"].intensity),
        )
        session.tick(45000)

        assert seen == [pytest.approx(0.6)]

    def test_containment_removes_weak_infections(self, make_session, eventful, scripted_rng):
        """Infections pushed to the floor are cleared."""
        session = make_session(tuning=eventful, rng=scripted_rng([0.0, 0.1, 1.0]))
        session.start_infection("A", intensity=0.1)

        session.tick(45000)

        assert "A" not in session.infections
        containment = [e for e in session.events if e["type"] == EventType.CONTAINMENT.value]
        assert containment[0]["removed"] == ["A"]
        # total_infected counts every infection ever, not the live ones
        assert session.total_infected == 1

    def test_who_dampener_in_session(self, make_session, eventful, scripted_rng):
        """A 0.3 draw fires at chance 0.5 but misses once who_dampener halves it."""
        tuning = eventful.model_copy(update={"world_event_chance": 0.5})

        plain = make_session(tuning=tuning, rng=scripted_rng([0.3, 0.5]))
        plain.tick(45000)
        assert plain.progression.capital > 0

        dampened = make_session(tuning=tuning, rng=scripted_rng([0.3, 0.5]))
        dampened.apply_progression({"flags": ["who_dampener"]})
        dampened.tick(45000)

        assert dampened.progression.capital == 0
        types = [e["type"] for e in dampened.events]
        assert EventType.CAPITAL_WINDFALL.value not in types

    def test_no_event_when_chance_misses(self, make_session, eventful, scripted_rng):
        tuning = eventful.model_copy(update={"world_event_chance": 0.5})
        rng = scripted_rng([0.9])
        session = make_session(tuning=tuning, rng=rng)

        session.tick(45000)

        assert session.progression.capital == 0
        assert session.progression.xp == 0
        assert not session.exposure
