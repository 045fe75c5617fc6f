"""Tests for the progression economy: XP, levels, skills and assets."""

import pytest

from outbreak.errors import (
    CompanyAlreadyOwnedError,
    CompanyNotOwnedError,
    EmployeeAlreadyHiredError,
    InsufficientCapitalError,
    InsufficientSkillPointsError,
    MissingPrerequisiteError,
    SkillAlreadyUnlockedError,
    UnknownCompanyError,
    UnknownEmployeeError,
    UnknownSkillError,
)
from outbreak.state.event_bus import EventType
from outbreak.systems.progression import xp_for_level


class TestXpCurve:
    """XP needed per level."""

    def test_first_levels(self):
        assert xp_for_level(1) == 140
        assert xp_for_level(2) == 165
        assert xp_for_level(3) == 195

    def test_custom_curve(self):
        assert xp_for_level(1, base_xp=100, growth_rate=2.0) == 100
        assert xp_for_level(3, base_xp=100, growth_rate=2.0) == 400

    def test_monotonic(self):
        """Each level costs at least as much as the one before."""
        costs = [xp_for_level(level) for level in range(1, 30)]
        assert costs == sorted(costs)


class TestGrantXp:
    """XP grants and leveling."""

    def test_level_up(self, session):
        """150 XP at level 1 reaches level 2 with 10 XP left over."""
        grant = session.grant_xp(150, "test")

        p = session.progression
        assert p.level == 2
        assert p.xp == 10
        assert p.skill_points == 1
        assert p.xp_to_next == 165
        assert grant.levels_gained == 1

    def test_capital_from_xp(self, session):
        """XP pays half its amount in capital, plus 50 per level."""
        session.grant_xp(150)
        assert session.progression.capital == pytest.approx(75 + 50)

    def test_multiple_levels(self, session):
        """One large grant can roll several levels."""
        session.grant_xp(140 + 165 + 5)

        p = session.progression
        assert p.level == 3
        assert p.xp == 5
        assert p.skill_points == 2
        level_ups = [e for e in session.events if e["type"] == EventType.LEVEL_UP.value]
        assert [e["level"] for e in level_ups] == [2, 3]

    def test_fractional_xp_carries(self, session):
        """Sub-integer grants accumulate until a whole point is earned."""
        session.grant_xp(0.4)
        session.grant_xp(0.4)
        assert session.progression.xp == 0

        grant = session.grant_xp(0.4)
        assert grant.amount == 1
        assert session.progression.xp == 1

    def test_invalid_amounts_grant_nothing(self, session):
        """Negative and non-numeric amounts are ignored."""
        for amount in (-5, 0, "lots", None, float("nan")):
            grant = session.grant_xp(amount)
            assert grant.amount == 0
        assert session.progression.xp == 0
        assert not session.is_progression_dirty()

    def test_capital_bonus_flag(self, session):
        """capital_bonus raises the capital rate by 15%."""
        session.apply_progression({"flags": ["capital_bonus"]})
        session.grant_xp(100)
        assert session.progression.capital == pytest.approx(57.5)

    def test_event_payload(self, session):
        """XP_GAINED records the reason and context."""
        session.grant_xp(12, "bonus", {"source": "test"})
        event = session.events[-1]
        assert event["type"] == EventType.XP_GAINED.value
        assert event["amount"] == 12
        assert event["reason"] == "bonus"
        assert event["context"] == {"source": "test"}


class TestUnlockSkill:
    """Skill tree rules."""

    @pytest.fixture
    def funded(self, session):
        session.apply_progression({"skill_points": 5})
        return session

    def test_unlock(self, funded):
        """Unlocking spends points and applies attribute bonuses."""
        skill = funded.unlock_skill("spread-hydra")

        assert skill.id == "spread-hydra"
        assert funded.progression.skill_points == 4
        assert "spread-hydra" in funded.progression.unlocked_skills
        assert funded.attributes.spread == pytest.approx(0.59)
        assert funded.is_progression_dirty()

    def test_insufficient_points(self, session):
        with pytest.raises(InsufficientSkillPointsError):
            session.unlock_skill("spread-hydra")

    def test_unknown_skill(self, funded):
        with pytest.raises(UnknownSkillError):
            funded.unlock_skill("telepathy")

    def test_already_unlocked(self, funded):
        funded.unlock_skill("spread-hydra")
        with pytest.raises(SkillAlreadyUnlockedError):
            funded.unlock_skill("spread-hydra")
        assert funded.progression.skill_points == 4

    def test_missing_prerequisite(self, funded):
        """Skills need every listed requirement first."""
        with pytest.raises(MissingPrerequisiteError) as exc:
            funded.unlock_skill("spread-helios")
        assert exc.value.missing == ["spread-hydra"]

    def test_flags_and_capital(self, funded):
        """Black Funds pays capital and grants the capital_bonus flag."""
        funded.unlock_skill("spread-hydra")
        funded.unlock_skill("economy-blackfunds")

        assert funded.progression.capital == pytest.approx(150)
        assert "capital_bonus" in funded.progression.flags

    def test_blueprints(self, funded):
        funded.unlock_skill("spread-hydra")
        funded.unlock_skill("blueprint-worm")
        assert funded.progression.blueprints == ["worm"]

    def test_bonuses_stack(self, funded):
        """Chained skills sum their deltas."""
        funded.unlock_skill("stealth-veil-weave")
        funded.unlock_skill("stealth-neural-fog")
        assert funded.attributes.stealth == pytest.approx(0.68)


class TestCompanies:
    """Company purchases and employee hires."""

    @pytest.fixture
    def rich(self, session):
        session.apply_progression({"capital": 500})
        return session

    def test_purchase(self, rich):
        """Buying a company spends capital and applies its bonus."""
        power_before = rich.base_power()
        company = rich.purchase_company("ghostworks")

        assert company.id == "ghostworks"
        assert rich.progression.capital == pytest.approx(180)
        assert rich.progression.companies == ["ghostworks"]
        assert rich.attributes.stealth == pytest.approx(0.56)
        assert rich.base_power() > power_before + 0.02

    def test_insufficient_capital(self, session):
        with pytest.raises(InsufficientCapitalError):
            session.purchase_company("ghostworks")
        assert session.progression.companies == []

    def test_unknown_company(self, rich):
        with pytest.raises(UnknownCompanyError):
            rich.purchase_company("acme")

    def test_already_owned(self, rich):
        rich.purchase_company("ghostworks")
        with pytest.raises(CompanyAlreadyOwnedError):
            rich.purchase_company("ghostworks")

    def test_hire(self, rich):
        """Hiring spends capital and applies the employee bonus."""
        rich.purchase_company("ghostworks")
        employee = rich.hire_employee("ghostworks", "ghost-analyst")

        assert employee.id == "ghost-analyst"
        assert rich.progression.capital == pytest.approx(0)
        assert rich.progression.employees == ["ghost-analyst"]
        assert rich.attributes.stealth == pytest.approx(0.61)

    def test_hire_requires_ownership(self, rich):
        with pytest.raises(CompanyNotOwnedError):
            rich.hire_employee("ghostworks", "ghost-analyst")

    def test_hire_unknown_company(self, rich):
        with pytest.raises(UnknownCompanyError):
            rich.hire_employee("acme", "ghost-analyst")

    def test_hire_employee_of_other_company(self, rich):
        """Employees are looked up within the named company."""
        rich.purchase_company("ghostworks")
        with pytest.raises(UnknownEmployeeError):
            rich.hire_employee("ghostworks", "hydra-swe")

    def test_hire_twice(self, session):
        session.apply_progression({"capital": 1000})
        session.purchase_company("ghostworks")
        session.hire_employee("ghostworks", "ghost-analyst")
        with pytest.raises(EmployeeAlreadyHiredError):
            session.hire_employee("ghostworks", "ghost-analyst")

    def test_hire_insufficient_capital(self, session):
        session.apply_progression({"capital": 400})
        session.purchase_company("ghostworks")
        with pytest.raises(InsufficientCapitalError):
            session.hire_employee("ghostworks", "ghost-liaison")
        assert session.progression.employees == []
