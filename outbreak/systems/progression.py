"""
Progression economy for outbreak sessions.

Handles XP, leveling, capital, skill unlocks, company purchases and employee
hires. Extracted from the session so the economy rules live in one place;
the session owns the state and the lock, this system applies the rules.

XP accrues smoothly: fractional awards (per-second exposure XP, for example)
are carried in a remainder and only whole XP ever reaches the ledger.
"""

import logging
import math
from typing import TYPE_CHECKING

from ..catalog.progression import Company, Employee, Skill
from ..errors import (
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
from ..state.event_bus import EventType
from ..state.schema import Flag, XpGrant, parse_number

if TYPE_CHECKING:
    from ..simulation.session import PlayerSession

logger = logging.getLogger(__name__)

# Guards floor() against float sums like 0.1 * 10 == 0.9999999999999999
_XP_EPSILON = 1e-9


def xp_for_level(level: int, base_xp: int = 140, growth_rate: float = 1.18) -> int:
    """
    XP needed to clear a level.

    xp_for_level(1) == base_xp, otherwise round(base_xp * growth ** (level - 1)),
    rounding halves up.
    """
    if level <= 1:
        return base_xp
    return int(math.floor(base_xp * growth_rate ** (level - 1) + 0.5))


class ProgressionSystem:
    """
    Applies economy rules to a session's ProgressionState.

    Callers hold the session lock; every method here assumes it.
    """

    def __init__(self, session: "PlayerSession"):
        self.session = session
        self._remainder = 0.0

    @property
    def _state(self):
        return self.session.progression

    @property
    def _tuning(self):
        return self.session.tuning

    @property
    def _catalog(self):
        return self.session.catalog

    def xp_for_level(self, level: int) -> int:
        return xp_for_level(level, self._tuning.base_xp, self._tuning.xp_growth_rate)

    # -------------------------------------------------------------------------
    # XP and leveling
    # -------------------------------------------------------------------------

    def grant_xp(
        self,
        amount: float,
        reason: str = "",
        context: dict | None = None,
        now: float | None = None,
    ) -> XpGrant:
        """
        Add XP, derive capital from it, and roll overflow into level-ups.

        Negative or non-numeric amounts grant nothing.
        """
        state = self._state
        now = self.session.now() if now is None else now

        amount = parse_number(amount, 0.0)
        if amount <= 0:
            return XpGrant(level=state.level)

        total = self._remainder + amount
        whole = int(math.floor(total + _XP_EPSILON))
        self._remainder = max(0.0, total - whole)
        if whole <= 0:
            return XpGrant(level=state.level)

        rate = self._tuning.capital_per_xp
        if state.has_flag(Flag.CAPITAL_BONUS):
            rate *= self._tuning.capital_bonus_multiplier
        capital = round(whole * rate, 2)

        state.xp += whole
        state.capital = round(state.capital + capital, 2)

        levels: list[int] = []
        while state.xp >= state.xp_to_next:
            state.xp -= state.xp_to_next
            state.level += 1
            state.skill_points += 1
            state.capital = round(state.capital + self._tuning.level_up_capital, 2)
            state.xp_to_next = self.xp_for_level(state.level)
            levels.append(state.level)

        self.session.mark_progression_dirty()
        self.session.emit(
            EventType.XP_GAINED,
            now,
            amount=whole,
            reason=reason,
            capital=capital,
            level=state.level,
            context=dict(context or {}),
        )
        for level in levels:
            self.session.emit(
                EventType.LEVEL_UP,
                now,
                level=level,
                skill_points=state.skill_points,
                capital_bonus=self._tuning.level_up_capital,
            )
        if levels:
            logger.info(f"Player {self.session.player_id} reached level {state.level}")

        return XpGrant(
            amount=whole,
            capital=capital + self._tuning.level_up_capital * len(levels),
            levels_gained=len(levels),
            level=state.level,
        )

    def normalize_levels(self) -> None:
        """Re-derive xp_to_next and silently roll any overflow (used on restore)."""
        state = self._state
        state.xp_to_next = self.xp_for_level(state.level)
        while state.xp >= state.xp_to_next:
            state.xp -= state.xp_to_next
            state.level += 1
            state.skill_points += 1
            state.xp_to_next = self.xp_for_level(state.level)
        self._remainder = 0.0

    # -------------------------------------------------------------------------
    # Skills
    # -------------------------------------------------------------------------

    def unlock_skill(self, skill_id: str) -> Skill:
        state = self._state
        skill = self._catalog.get_skill(skill_id)
        if skill is None:
            raise UnknownSkillError(skill_id)
        if skill.id in state.unlocked_skills:
            raise SkillAlreadyUnlockedError(skill.id)

        missing = [req for req in skill.requires if req not in state.unlocked_skills]
        if missing:
            raise MissingPrerequisiteError(skill.id, missing)
        if state.skill_points < skill.cost:
            raise InsufficientSkillPointsError(skill.id, skill.cost, state.skill_points)

        state.skill_points -= skill.cost
        state.unlocked_skills.append(skill.id)

        effects = skill.effects
        for flag in effects.flags:
            if flag not in state.flags:
                state.flags.append(flag)
        for blueprint in effects.unlock_blueprints:
            if blueprint not in state.blueprints:
                state.blueprints.append(blueprint)
        if effects.capital_immediate > 0:
            state.capital = round(state.capital + effects.capital_immediate, 2)

        self.session.recompute_attributes()
        self.session.mark_progression_dirty()
        self.session.emit(
            EventType.SKILL_UNLOCKED,
            self.session.now(),
            skill=skill.id,
            name=skill.name,
            cost=skill.cost,
            flags=list(effects.flags),
            blueprints=list(effects.unlock_blueprints),
            capital=effects.capital_immediate,
        )
        return skill

    # -------------------------------------------------------------------------
    # Companies and employees
    # -------------------------------------------------------------------------

    def _spend(self, item_id: str, cost: float) -> None:
        state = self._state
        if state.capital < cost:
            raise InsufficientCapitalError(item_id, cost, state.capital)
        state.capital = round(state.capital - cost, 2)

    def purchase_company(self, company_id: str) -> Company:
        state = self._state
        company = self._catalog.get_company(company_id)
        if company is None:
            raise UnknownCompanyError(company_id)
        if company.id in state.companies:
            raise CompanyAlreadyOwnedError(company.id)

        self._spend(company.id, company.cost)
        state.companies.append(company.id)

        self.session.recompute_attributes()
        self.session.mark_progression_dirty()
        self.session.emit(
            EventType.COMPANY_PURCHASED,
            self.session.now(),
            company=company.id,
            name=company.name,
            cost=company.cost,
        )
        return company

    def hire_employee(self, company_id: str, employee_id: str) -> Employee:
        state = self._state
        company = self._catalog.get_company(company_id)
        if company is None:
            raise UnknownCompanyError(company_id)
        employee = company.get_employee(employee_id)
        if employee is None:
            raise UnknownEmployeeError(company_id, employee_id)
        if employee.id in state.employees:
            raise EmployeeAlreadyHiredError(employee.id)
        if company.id not in state.companies:
            raise CompanyNotOwnedError(company.id)

        self._spend(employee.id, employee.cost)
        state.employees.append(employee.id)

        self.session.recompute_attributes()
        self.session.mark_progression_dirty()
        self.session.emit(
            EventType.EMPLOYEE_HIRED,
            self.session.now(),
            company=company.id,
            employee=employee.id,
            name=employee.name,
            cost=employee.cost,
        )
        return employee
