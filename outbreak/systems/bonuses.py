"""
Attribute bonus sources.

Unlocked skills, owned companies and hired employees each contribute a small
attribute delta. Effective attributes are a single fold over the list of
sources: clamp01(base + sum of deltas).
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from ..state.schema import AttributeDelta, Attributes

if TYPE_CHECKING:
    from ..catalog.progression import ProgressionCatalog
    from ..state.schema import ProgressionState


@dataclass(frozen=True)
class BonusSource:
    """One contributor to effective attributes."""
    kind: Literal["skill", "company", "employee"]
    id: str
    delta: AttributeDelta


def collect_bonus_sources(
    progression: "ProgressionState",
    catalog: "ProgressionCatalog",
) -> list[BonusSource]:
    """Every bonus the current roster grants. Unknown ids contribute nothing."""
    sources: list[BonusSource] = []

    for skill_id in progression.unlocked_skills:
        skill = catalog.get_skill(skill_id)
        if skill is not None:
            sources.append(BonusSource("skill", skill.id, skill.effects.attributes))

    for company_id in progression.companies:
        company = catalog.get_company(company_id)
        if company is not None:
            sources.append(BonusSource("company", company.id, company.bonuses))

    for employee_id in progression.employees:
        employee = catalog.get_employee(employee_id)
        if employee is not None:
            sources.append(BonusSource("employee", employee.id, employee.bonuses))

    return sources


def fold_attributes(base: Attributes, sources: list[BonusSource]) -> Attributes:
    """Effective attributes from base plus every source's delta."""
    total = AttributeDelta()
    for source in sources:
        total = total + source.delta
    return base.with_bonus(total)
