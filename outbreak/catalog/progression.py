"""
Progression catalog: the skill tree and the company/employee roster.

Ids are stable; persisted progression rows reference them.
"""

from pydantic import BaseModel, ConfigDict, Field

from ..state.schema import AttributeDelta


class SkillEffects(BaseModel):
    model_config = ConfigDict(frozen=True)

    attributes: AttributeDelta = Field(default_factory=AttributeDelta)
    flags: tuple[str, ...] = ()
    unlock_blueprints: tuple[str, ...] = ()
    capital_immediate: float = 0.0


class Skill(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    category: str = ""
    description: str = ""
    cost: int = Field(default=1, gt=0)      # skill points
    requires: tuple[str, ...] = ()
    effects: SkillEffects = Field(default_factory=SkillEffects)


class Employee(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    cost: float = Field(default=0.0, ge=0.0)
    bonuses: AttributeDelta = Field(default_factory=AttributeDelta)


class Company(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str = ""
    description: str = ""
    cost: float = Field(default=0.0, ge=0.0)
    upkeep: float = 0.0
    bonuses: AttributeDelta = Field(default_factory=AttributeDelta)
    employees: tuple[Employee, ...] = ()

    def get_employee(self, employee_id: str) -> Employee | None:
        for employee in self.employees:
            if employee.id == employee_id:
                return employee
        return None


class ProgressionCatalog:
    """Ordered skills and companies with id lookups."""

    def __init__(
        self,
        skills: list[Skill | dict] | None = None,
        companies: list[Company | dict] | None = None,
    ):
        self.skills: tuple[Skill, ...] = tuple(
            s if isinstance(s, Skill) else Skill.model_validate(s)
            for s in (skills or [])
        )
        self.companies: tuple[Company, ...] = tuple(
            c if isinstance(c, Company) else Company.model_validate(c)
            for c in (companies or [])
        )
        self._skills = {s.id: s for s in self.skills}
        self._companies = {c.id: c for c in self.companies}
        # employee id -> owning company id
        self._employer: dict[str, str] = {}
        for company in self.companies:
            for employee in company.employees:
                if employee.id in self._employer:
                    raise ValueError(f"Employee id used twice: {employee.id}")
                self._employer[employee.id] = company.id

    def get_skill(self, skill_id: str) -> Skill | None:
        return self._skills.get(skill_id)

    def get_company(self, company_id: str) -> Company | None:
        return self._companies.get(company_id)

    def get_employee(self, employee_id: str) -> Employee | None:
        company_id = self._employer.get(employee_id)
        if company_id is None:
            return None
        return self._companies[company_id].get_employee(employee_id)

    def employer_of(self, employee_id: str) -> str | None:
        """Id of the company an employee belongs to."""
        return self._employer.get(employee_id)
