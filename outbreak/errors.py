"""
Exception taxonomy for the outbreak engine.

Every error is a local validation failure raised synchronously from the
offending call. Nothing here is retried internally.

Lookup failures also derive from LookupError and rule violations from
ValueError, so callers can catch by builtin category when they don't care
about the specific case.
"""


class SimulationError(Exception):
    """Base class for all engine errors."""
    pass


class InvalidPlayerError(SimulationError, ValueError):
    """Player identity missing or empty."""
    pass


class UnknownCountryError(SimulationError, LookupError):
    """Country name could not be resolved against the graph."""

    def __init__(self, country):
        self.country = country
        super().__init__(f"Unknown country: {country}")


# -----------------------------------------------------------------------------
# Skills
# -----------------------------------------------------------------------------

class UnknownSkillError(SimulationError, LookupError):
    def __init__(self, skill_id: str):
        self.skill_id = skill_id
        super().__init__(f"Unknown skill: {skill_id}")


class SkillAlreadyUnlockedError(SimulationError, ValueError):
    def __init__(self, skill_id: str):
        self.skill_id = skill_id
        super().__init__(f"Skill already unlocked: {skill_id}")


class MissingPrerequisiteError(SimulationError, ValueError):
    """A required skill is not yet unlocked."""

    def __init__(self, skill_id: str, missing: list[str]):
        self.skill_id = skill_id
        self.missing = missing
        super().__init__(
            f"Cannot unlock {skill_id}: requires {', '.join(missing)}"
        )


class InsufficientSkillPointsError(SimulationError, ValueError):
    def __init__(self, skill_id: str, cost: int, available: int):
        self.skill_id = skill_id
        self.cost = cost
        self.available = available
        super().__init__(
            f"Not enough skill points for {skill_id}: need {cost}, have {available}"
        )


# -----------------------------------------------------------------------------
# Companies and employees
# -----------------------------------------------------------------------------

class UnknownCompanyError(SimulationError, LookupError):
    def __init__(self, company_id: str):
        self.company_id = company_id
        super().__init__(f"Unknown company: {company_id}")


class CompanyAlreadyOwnedError(SimulationError, ValueError):
    def __init__(self, company_id: str):
        self.company_id = company_id
        super().__init__(f"Company already owned: {company_id}")


class InsufficientCapitalError(SimulationError, ValueError):
    def __init__(self, item_id: str, cost: float, available: float):
        self.item_id = item_id
        self.cost = cost
        self.available = available
        super().__init__(
            f"Not enough capital for {item_id}: need {cost}, have {available:.2f}"
        )


class UnknownEmployeeError(SimulationError, LookupError):
    def __init__(self, company_id: str, employee_id: str):
        self.company_id = company_id
        self.employee_id = employee_id
        super().__init__(f"Unknown employee {employee_id} at {company_id}")


class EmployeeAlreadyHiredError(SimulationError, ValueError):
    def __init__(self, employee_id: str):
        self.employee_id = employee_id
        super().__init__(f"Employee already hired: {employee_id}")


class CompanyNotOwnedError(SimulationError, ValueError):
    """Employees can only be hired into a company the player owns."""

    def __init__(self, company_id: str):
        self.company_id = company_id
        super().__init__(f"Company not owned: {company_id}")


# -----------------------------------------------------------------------------
# AV bypass
# -----------------------------------------------------------------------------

class ChallengeNotFoundError(SimulationError, LookupError):
    def __init__(self, challenge_id: str):
        self.challenge_id = challenge_id
        super().__init__(f"No pending AV challenge: {challenge_id}")


class IncorrectBypassAnswerError(SimulationError, ValueError):
    """Answer didn't match. The challenge stays pending for another attempt."""

    def __init__(self, challenge_id: str, country: str):
        self.challenge_id = challenge_id
        self.country = country
        super().__init__(f"Bypass rejected for {country}")
