"""
Pydantic models for outbreak session state.

Designed to serialize to JSON. ProgressionState mirrors the persisted
progression row; the *View models are the read-only shapes handed to
serializers by get_snapshot() and get_summary().
"""

import math
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------

class Flag(str, Enum):
    """Progression flags the engine reacts to. Granted by skills."""
    AI_PAYLOAD = "ai_payload"              # +0.04 base power
    EXPOSURE_BURST = "exposure_burst"      # x1.25 spread rate
    XP_PULSE_BOOST = "xp_pulse_boost"      # shorter passive XP interval
    CAPITAL_BONUS = "capital_bonus"        # more capital per XP
    CAPITAL_WINDFALL = "capital_windfall"  # passive pulses may pay capital
    WHO_DAMPENER = "who_dampener"          # fewer world events
    AV_DECAY_SLOW = "av_decay_slow"        # slower exposure decay
    AV_SPOOFING = "av_spoofing"            # softer containment


class ProgressionSync(str, Enum):
    """Persistence handshake state for a session's progression."""
    CLEAN = "clean"      # Matches the last durable save
    DIRTY = "dirty"      # Diverged since the last save
    SAVING = "saving"    # Handed to the persistence collaborator


class InfectionStatus(str, Enum):
    INFECTED = "infected"
    INTENSIFIED = "intensified"
    ALREADY_INFECTED = "already_infected"
    BLOCKED = "blocked"


# -----------------------------------------------------------------------------
# Numeric helpers
# -----------------------------------------------------------------------------

def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    """Clamp into [low, high]. Non-finite values collapse to low."""
    try:
        value = float(value)
    except (TypeError, ValueError):
        return low
    if not math.isfinite(value):
        return low
    return min(max(value, low), high)


def clamp01(value: float) -> float:
    return clamp(value, 0.0, 1.0)


def parse_number(value: Any, fallback: float) -> float:
    """Parse a player-supplied number, returning fallback when it isn't one."""
    if isinstance(value, bool):
        return fallback
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    return parsed if math.isfinite(parsed) else fallback


def _optional_number(value: Any) -> float | None:
    parsed = parse_number(value, math.nan)
    return None if math.isnan(parsed) else parsed


# -----------------------------------------------------------------------------
# Attributes
# -----------------------------------------------------------------------------

ATTRIBUTE_NAMES = ("spread", "stealth", "resilience")


class AttributeDelta(BaseModel):
    """Additive bonus to attributes. Deltas may be negative."""
    spread: float = 0.0
    stealth: float = 0.0
    resilience: float = 0.0

    def __add__(self, other: "AttributeDelta") -> "AttributeDelta":
        return AttributeDelta(
            spread=self.spread + other.spread,
            stealth=self.stealth + other.stealth,
            resilience=self.resilience + other.resilience,
        )


class Attributes(BaseModel):
    """Malware attributes, each in [0, 1]."""
    spread: float = 0.5
    stealth: float = 0.5
    resilience: float = 0.5

    @classmethod
    def sanitize(cls, raw: dict | None, current: "Attributes | None" = None) -> "Attributes":
        """
        Merge raw player input over current values.

        Unset or non-numeric entries keep the current value; everything is
        clamped into [0, 1]. Never raises on malformed input.
        """
        current = current or cls()
        raw = raw if isinstance(raw, dict) else {}
        values = {}
        for name in ATTRIBUTE_NAMES:
            fallback = getattr(current, name)
            values[name] = clamp01(parse_number(raw.get(name, fallback), fallback))
        return cls(**values)

    def with_bonus(self, delta: AttributeDelta) -> "Attributes":
        """Effective attributes: clamp01(base + delta) per attribute."""
        return Attributes(
            spread=clamp01(self.spread + delta.spread),
            stealth=clamp01(self.stealth + delta.stealth),
            resilience=clamp01(self.resilience + delta.resilience),
        )


# -----------------------------------------------------------------------------
# Session state
# -----------------------------------------------------------------------------

class Infection(BaseModel):
    """A fully compromised country."""
    infected_at: float                 # epoch milliseconds
    intensity: float = Field(ge=0.0, le=1.0)
    source: str = "direct"
    last_boosted_at: float | None = None


class AvBypassRecord(BaseModel):
    """
    Per-country bypass. Once unlocked it stays unlocked.

    An empty vendor is filled from the country's AV profile on restore.
    """
    vendor: str = ""
    tier: int = Field(default=1, ge=1)
    unlocked: bool = False
    unlocked_at: float | None = None

    @model_validator(mode="before")
    @classmethod
    def repair_row(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        vendor = data.get("vendor")
        data["vendor"] = vendor.strip() if isinstance(vendor, str) else ""
        data["tier"] = max(1, int(parse_number(data.get("tier"), 1)))
        data["unlocked"] = data.get("unlocked") is True
        data["unlocked_at"] = _optional_number(data.get("unlocked_at"))
        return data


class PendingAvChallenge(BaseModel):
    """
    An issued bypass challenge.

    The expected answer is excluded from every dump; only the engine's
    verification call ever reads it.
    """
    id: str
    country: str
    vendor: str
    tier: int
    prompt: str
    expected: str = Field(exclude=True, repr=False)
    reward_xp: int
    template: str = ""
    issued_at: float = 0.0

    def public_view(self) -> "ChallengeView":
        return ChallengeView(
            id=self.id,
            country=self.country,
            vendor=self.vendor,
            tier=self.tier,
            prompt=self.prompt,
            reward_xp=self.reward_xp,
        )


ID_LIST_FIELDS = ("unlocked_skills", "flags", "blueprints", "companies", "employees")


class ProgressionState(BaseModel):
    """
    The RPG economy ledger.

    Also the shape of the persisted progression row. xp_to_next is derived
    from level and is recomputed whenever a state is restored.
    """
    level: int = Field(default=1, ge=1)
    xp: int = Field(default=0, ge=0)
    xp_to_next: int = 140
    skill_points: int = Field(default=0, ge=0)
    capital: float = Field(default=0.0, ge=0.0)
    unlocked_skills: list[str] = Field(default_factory=list)
    flags: list[str] = Field(default_factory=list)
    blueprints: list[str] = Field(default_factory=list)
    companies: list[str] = Field(default_factory=list)
    employees: list[str] = Field(default_factory=list)
    av_bypass: dict[str, AvBypassRecord] = Field(default_factory=dict)
    last_passive_xp_at: float | None = None

    @model_validator(mode="before")
    @classmethod
    def repair_row(cls, data: Any) -> Any:
        """
        Repair a raw row instead of rejecting it.

        Counters are clamped to their floors, id lists keep only strings and
        av_bypass keeps only mapping records. Stored rows written by older
        builds or edited by hand still load.
        """
        if not isinstance(data, dict):
            return data
        data = dict(data)
        data["level"] = max(1, int(parse_number(data.get("level"), 1)))
        data["xp"] = max(0, int(parse_number(data.get("xp"), 0)))
        data["xp_to_next"] = max(1, int(parse_number(data.get("xp_to_next"), 140)))
        data["skill_points"] = max(0, int(parse_number(data.get("skill_points"), 0)))
        data["capital"] = max(0.0, parse_number(data.get("capital"), 0.0))
        for name in ID_LIST_FIELDS:
            items = data.get(name)
            if not isinstance(items, (list, tuple)):
                items = []
            data[name] = [item for item in items if isinstance(item, str)]

        bypass = data.get("av_bypass")
        if not isinstance(bypass, dict):
            bypass = {}
        data["av_bypass"] = {
            str(country): record
            for country, record in bypass.items()
            if isinstance(record, (dict, AvBypassRecord))
        }
        data["last_passive_xp_at"] = _optional_number(data.get("last_passive_xp_at"))
        return data

    def has_flag(self, flag: Flag | str) -> bool:
        value = flag.value if isinstance(flag, Flag) else flag
        return value in self.flags

    def is_bypassed(self, country: str) -> bool:
        record = self.av_bypass.get(country)
        return bool(record and record.unlocked)


class PlayerConfig(BaseModel):
    """
    Partial configuration accepted at construction and on update.

    Values stay loosely typed on purpose: malformed numbers are clamped or
    ignored by the session rather than rejected here.
    """
    malware_quality: Any = None
    attributes: dict[str, Any] = Field(default_factory=dict)
    progression: ProgressionState | None = None


# -----------------------------------------------------------------------------
# Results
# -----------------------------------------------------------------------------

class ChallengeView(BaseModel):
    """What a player may see of a pending challenge."""
    id: str
    country: str
    vendor: str
    tier: int
    prompt: str
    reward_xp: int


class InfectionResult(BaseModel):
    """Outcome of start_infection()."""
    status: InfectionStatus
    country: str
    intensity: float | None = None
    challenge: ChallengeView | None = None

    @property
    def blocked(self) -> bool:
        return self.status == InfectionStatus.BLOCKED


class BypassResult(BaseModel):
    """Outcome of a successful attempt_av_bypass()."""
    country: str
    vendor: str
    tier: int
    reward_xp: int
    unlocked_at: float


class XpGrant(BaseModel):
    """Outcome of grant_xp()."""
    amount: int = 0
    capital: float = 0.0
    levels_gained: int = 0
    level: int = 1


# -----------------------------------------------------------------------------
# Snapshot views
# -----------------------------------------------------------------------------

class CountryMetrics(BaseModel):
    code: str
    region: str
    security: float
    connectivity: float
    population: float
    protected: bool = False


class InfectionView(BaseModel):
    country: str
    infected_at: float
    intensity: float
    source: str
    metrics: CountryMetrics | None = None


class ExposureView(BaseModel):
    country: str
    progress: float
    metrics: CountryMetrics | None = None


class ProgressionView(BaseModel):
    level: int
    xp: int
    xp_to_next: int
    skill_points: int
    capital: float
    unlocked_skills: list[str]
    flags: list[str]
    blueprints: list[str]
    companies: list[str]
    employees: list[str]
    av_bypass: dict[str, AvBypassRecord]
    dirty: bool


class SessionSnapshot(BaseModel):
    """Fully serializable view of a session. A serializer keeps every field."""
    player_id: str
    malware_quality: float
    base_attributes: Attributes
    attributes: Attributes
    base_power: float
    total_infected: int
    active_infections: int
    infected_countries: list[InfectionView]
    pending_exposures: list[ExposureView]
    pending_challenges: list[ChallengeView]
    events: list[dict]
    progression: ProgressionView
    last_tick: float


class PlayerSummary(BaseModel):
    """Lightweight per-session digest for listings."""
    player_id: str
    malware_quality: float
    level: int
    capital: float
    active_infections: int
    pending_targets: int
    pending_challenges: int
    total_infected: int
    last_tick: float
