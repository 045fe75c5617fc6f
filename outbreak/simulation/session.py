"""
Per-player simulation session.

One PlayerSession holds a player's whole mutable state: infections,
exposures, derived attributes, the progression ledger, pending AV challenges
and the event feed. tick(now) advances it through time:

    passive XP -> world event -> exposure decay -> propagation -> sweep

tick is idempotent with respect to time: a timestamp at or before the last
tick changes nothing. Every public operation holds the session's lock, so
background and on-demand ticks may interleave safely.
"""

import functools
import logging
import math
import random
import threading
import time
from typing import Any, Callable

from ..catalog import default_country_graph, default_progression_catalog
from ..catalog.graph import AntivirusProfile, CountryGraph
from ..catalog.progression import Company, Employee, ProgressionCatalog, Skill
from ..config import EngineTuning
from ..errors import (
    ChallengeNotFoundError,
    IncorrectBypassAnswerError,
    InvalidPlayerError,
    UnknownCountryError,
)
from ..state.event_bus import EventBus, EventType, SessionEvent
from ..state.schema import (
    Attributes,
    AvBypassRecord,
    BypassResult,
    ChallengeView,
    CountryMetrics,
    ExposureView,
    Flag,
    Infection,
    InfectionResult,
    InfectionStatus,
    InfectionView,
    PendingAvChallenge,
    PlayerConfig,
    PlayerSummary,
    ProgressionState,
    ProgressionSync,
    ProgressionView,
    SessionSnapshot,
    XpGrant,
    clamp01,
    parse_number,
)
from ..systems.av_challenge import build_av_challenge
from ..systems.bonuses import collect_bonus_sources, fold_attributes
from ..systems.progression import ProgressionSystem
from ..systems.world_events import WorldEventKind, choose_world_event, world_event_chance

logger = logging.getLogger(__name__)


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


def _locked(method):
    """Run a session method under the session lock."""
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        with self._lock:
            return method(self, *args, **kwargs)
    return wrapper


def _as_config_dict(config: PlayerConfig | dict | None) -> dict:
    if config is None:
        return {}
    if isinstance(config, PlayerConfig):
        return config.model_dump(exclude_none=True)
    if isinstance(config, dict):
        return config
    raise TypeError(f"Unsupported config type: {type(config).__name__}")


class PlayerSession:
    """
    One player's simulation.

    Args:
        player_id: Required, non-empty player identity
        config: Optional malware_quality, attributes and progression snapshot
        countries: Country graph (packaged graph by default)
        catalog: Skill and company catalog (packaged catalog by default)
        tuning: Balance constants
        rng: Random source for passive XP, world events and challenge tokens
        clock: Returns the current time in epoch milliseconds
    """

    def __init__(
        self,
        player_id: str,
        config: PlayerConfig | dict | None = None,
        *,
        countries: CountryGraph | None = None,
        catalog: ProgressionCatalog | None = None,
        tuning: EngineTuning | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], float] | None = None,
    ):
        if player_id is None or not str(player_id).strip():
            raise InvalidPlayerError("player_id is required to create a simulation session")

        self.player_id = str(player_id)
        self.countries = countries if countries is not None else default_country_graph()
        self.catalog = catalog if catalog is not None else default_progression_catalog()
        self.tuning = tuning or EngineTuning()
        self.rng = rng or random.Random()
        self._clock = clock or _wall_clock_ms
        self._lock = threading.RLock()

        self.bus = EventBus(history_limit=self.tuning.event_log_limit)
        self.infections: dict[str, Infection] = {}
        self.exposure: dict[str, float] = {}
        self.pending_challenges: dict[str, PendingAvChallenge] = {}
        self.total_infected = 0

        self.last_tick = self.now()
        self._last_world_event_at = self.last_tick

        self.malware_quality = 0.5
        self.base_attributes = Attributes()
        self.attributes = Attributes()

        self.progression = ProgressionState(xp_to_next=self.tuning.base_xp)
        self._sync = ProgressionSync.CLEAN
        self.economy = ProgressionSystem(self)

        config = _as_config_dict(config)
        self.update_config(config, silent=True)
        if config.get("progression") is not None:
            self.apply_progression(config["progression"], silent=True)
        if self.progression.last_passive_xp_at is None:
            self.progression.last_passive_xp_at = self.last_tick

    # -------------------------------------------------------------------------
    # Plumbing shared with the systems
    # -------------------------------------------------------------------------

    def now(self) -> float:
        return float(self._clock())

    def emit(self, event_type: EventType, timestamp: float, **data) -> SessionEvent:
        return self.bus.emit(event_type, timestamp, **data)

    def mark_progression_dirty(self) -> None:
        self._sync = ProgressionSync.DIRTY

    def recompute_attributes(self) -> Attributes:
        """Effective attributes: one fold over every bonus source."""
        sources = collect_bonus_sources(self.progression, self.catalog)
        self.attributes = fold_attributes(self.base_attributes, sources)
        return self.attributes

    def _has_flag(self, flag: Flag) -> bool:
        return self.progression.has_flag(flag)

    # -------------------------------------------------------------------------
    # Configuration and restore
    # -------------------------------------------------------------------------

    @_locked
    def update_config(self, config: PlayerConfig | dict | None = None, silent: bool = False) -> dict:
        """
        Merge malware quality and base attributes.

        Malformed numbers keep the current value; everything clamps to [0, 1].
        """
        config = _as_config_dict(config)

        if config.get("malware_quality") is not None:
            self.malware_quality = clamp01(
                parse_number(config["malware_quality"], self.malware_quality)
            )
        if config.get("attributes"):
            self.base_attributes = Attributes.sanitize(config["attributes"], self.base_attributes)

        self.recompute_attributes()

        if not silent:
            self.emit(
                EventType.CONFIG_UPDATED,
                self.now(),
                malware_quality=self.malware_quality,
                attributes=self.base_attributes.model_dump(),
            )

        return {
            "malware_quality": self.malware_quality,
            "attributes": self.base_attributes.model_dump(),
        }

    @_locked
    def apply_progression(self, state: ProgressionState | dict, silent: bool = False) -> ProgressionState:
        """
        Restore a full progression snapshot, replacing everything in memory.

        Malformed counters are clamped rather than rejected, and entries the
        catalogs don't recognise are dropped. The restored state counts as
        saved, so the dirty flag is cleared.
        """
        now = self.now()
        if isinstance(state, ProgressionState):
            restored = state.model_copy(deep=True)
        else:
            restored = ProgressionState.model_validate(self._screen_bypass_rows(state, now))

        self._heal_progression(restored, now)
        self.progression = restored
        self.economy.normalize_levels()
        if restored.last_passive_xp_at is None:
            restored.last_passive_xp_at = self.last_tick

        for country in list(self.pending_challenges):
            if restored.is_bypassed(country):
                del self.pending_challenges[country]

        self.recompute_attributes()
        self._sync = ProgressionSync.CLEAN

        if not silent:
            self.emit(
                EventType.PROGRESSION_RESTORED,
                now,
                level=restored.level,
                skills=len(restored.unlocked_skills),
                companies=len(restored.companies),
            )
        return restored

    def _heal_progression(self, state: ProgressionState, now: float) -> None:
        """Drop ids unknown to the catalogs and re-key AV records canonically."""

        def keep(kind: str, ids: list[str], known: Callable[[str], Any]) -> list[str]:
            kept: list[str] = []
            for item in ids:
                if item in kept:
                    continue
                if known(item) is None:
                    self._report_dropped(kind, item, now)
                    continue
                kept.append(item)
            return kept

        state.unlocked_skills = keep("skill", state.unlocked_skills, self.catalog.get_skill)
        state.companies = keep("company", state.companies, self.catalog.get_company)
        state.employees = keep("employee", state.employees, self.catalog.get_employee)
        state.flags = list(dict.fromkeys(state.flags))
        state.blueprints = list(dict.fromkeys(state.blueprints))

        bypass: dict[str, AvBypassRecord] = {}
        for raw_name, record in state.av_bypass.items():
            name = self.countries.resolve(raw_name)
            if name is None:
                self._report_dropped("av_bypass", raw_name, now)
                continue
            if not record.vendor:
                record = record.model_copy(update={"vendor": self._av_profile(name).vendor})
            bypass[name] = record
        state.av_bypass = bypass

    def _screen_bypass_rows(self, raw: Any, now: float) -> Any:
        """
        Prepare raw av_bypass records for validation.

        Records that aren't mappings are dropped and reported. Missing vendor
        and tier fields default to the country's AV profile.
        """
        if not isinstance(raw, dict) or not isinstance(raw.get("av_bypass"), dict):
            return raw

        rows: dict[str, Any] = {}
        for key, record in raw["av_bypass"].items():
            if isinstance(record, AvBypassRecord):
                rows[key] = record
                continue
            if not isinstance(record, dict):
                self._report_dropped("av_bypass", str(key), now)
                continue
            profile = self._av_profile(self.countries.resolve(str(key)))
            record = dict(record)
            if not record.get("vendor"):
                record["vendor"] = profile.vendor
            if record.get("tier") is None:
                record["tier"] = profile.tier
            rows[key] = record
        return {**raw, "av_bypass": rows}

    def _av_profile(self, name: str | None) -> AntivirusProfile:
        country = self.countries.get(name) if name else None
        if country is None or country.antivirus is None:
            return AntivirusProfile()
        return country.antivirus

    def _report_dropped(self, kind: str, item: str, now: float) -> None:
        logger.warning(f"Player {self.player_id}: dropping unknown {kind} '{item}'")
        self.emit(EventType.ENTRY_DROPPED, now, kind=kind, entry=item)

    # -------------------------------------------------------------------------
    # Derived strength
    # -------------------------------------------------------------------------

    def base_power(self) -> float:
        """Per-tick strength scalar from quality, attributes and assets."""
        a = self.attributes
        weighted = (
            0.35 * self.malware_quality
            + 0.3 * a.spread
            + 0.2 * a.resilience
            + 0.15 * a.stealth
        )
        assets = 0.02 * len(self.progression.companies)
        payload = 0.04 if self._has_flag(Flag.AI_PAYLOAD) else 0.0
        return clamp01(0.05 + 0.2 * weighted + assets + payload)

    def spread_rate(self, source_name: str, target_name: str, base_power: float | None = None) -> float:
        """Exposure gained per second by target from an infected source."""
        source = self.countries.get(source_name)
        target = self.countries.get(target_name)
        if source is None or target is None:
            return 0.0
        if base_power is None:
            base_power = self.base_power()

        connectivity = (source.connectivity + target.connectivity) / 2
        population_pressure = 0.6 + 0.5 * target.population
        security_mitigation = 1 - target.security
        if security_mitigation <= 0:
            return 0.0
        resilience_boost = 0.8 + 0.5 * self.attributes.resilience
        stealth_factor = 0.85 + 0.35 * self.attributes.stealth

        rate = (
            base_power
            * connectivity
            * population_pressure
            * security_mitigation
            * resilience_boost
            * stealth_factor
        )
        if self._has_flag(Flag.EXPOSURE_BURST):
            rate *= 1.25
        return max(0.0, rate)

    # -------------------------------------------------------------------------
    # AV gate
    # -------------------------------------------------------------------------

    def _is_gated(self, name: str) -> bool:
        """Protected and not yet bypassed."""
        country = self.countries.get(name)
        if country is None or country.antivirus is None:
            return False
        return not self.progression.is_bypassed(name)

    def _ensure_challenge(self, name: str, now: float) -> PendingAvChallenge:
        existing = self.pending_challenges.get(name)
        if existing is not None:
            return existing

        country = self.countries.get(name)
        challenge = build_av_challenge(name, country.antivirus, self.rng, now)
        self.pending_challenges[name] = challenge
        self.emit(
            EventType.AV_CHALLENGE_ISSUED,
            now,
            country=name,
            vendor=challenge.vendor,
            tier=challenge.tier,
            challenge_id=challenge.id,
        )
        logger.info(f"Player {self.player_id}: {challenge.vendor} guards {name}, challenge issued")
        return challenge

    # -------------------------------------------------------------------------
    # Infection
    # -------------------------------------------------------------------------

    @_locked
    def start_infection(
        self,
        country: str,
        *,
        reapply: bool = False,
        source: str = "direct",
        intensity: float | None = None,
        force: bool = False,
    ) -> InfectionResult:
        """
        Seed (or boost) an infection directly.

        Protected countries return a BLOCKED result carrying the pending
        challenge unless force is set; nothing else changes in that case.

        Raises:
            UnknownCountryError: country can't be resolved
        """
        resolved = self.countries.resolve(country)
        if resolved is None:
            raise UnknownCountryError(country)

        now = self.now()

        if not force and self._is_gated(resolved):
            challenge = self._ensure_challenge(resolved, now)
            self.emit(
                EventType.INFECTION_BLOCKED,
                now,
                country=resolved,
                vendor=challenge.vendor,
                challenge_id=challenge.id,
            )
            return InfectionResult(
                status=InfectionStatus.BLOCKED,
                country=resolved,
                challenge=challenge.public_view(),
            )

        existing = self.infections.get(resolved)
        if existing is not None:
            if not reapply:
                return InfectionResult(
                    status=InfectionStatus.ALREADY_INFECTED,
                    country=resolved,
                    intensity=existing.intensity,
                )
            boost = self.base_power() * self.tuning.reapply_boost
            existing.intensity = clamp01(existing.intensity + boost)
            existing.last_boosted_at = now
            self.emit(EventType.INTENSIFIED, now, country=resolved, intensity=existing.intensity)
            self.economy.grant_xp(self.tuning.reapply_xp, "reapply", {"country": resolved}, now)
            return InfectionResult(
                status=InfectionStatus.INTENSIFIED,
                country=resolved,
                intensity=existing.intensity,
            )

        if intensity is not None:
            value = clamp01(parse_number(intensity, 0.5))
        else:
            value = clamp01(
                0.4 + 0.6 * (0.5 * self.malware_quality + 0.5 * self.attributes.spread)
            )

        self._infect(resolved, now, value, source)
        self.emit(EventType.INFECTED, now, country=resolved, source=source, intensity=value)
        self.economy.grant_xp(
            self.tuning.direct_infection_xp, "infection", {"country": resolved}, now
        )
        return InfectionResult(status=InfectionStatus.INFECTED, country=resolved, intensity=value)

    def _infect(self, name: str, now: float, intensity: float, source: str) -> Infection:
        infection = Infection(infected_at=now, intensity=clamp01(intensity), source=source)
        self.infections[name] = infection
        self.exposure.pop(name, None)
        self.total_infected += 1
        return infection

    def _convert_exposure(self, name: str, now: float, source: str, intensity: float) -> bool:
        """Turn a full exposure into an infection, unless the AV gate holds."""
        if self._is_gated(name):
            self._ensure_challenge(name, now)
            if name in self.exposure:
                self.exposure[name] = min(self.exposure[name], self.tuning.exposure_cap)
            return False

        infection = self._infect(name, now, intensity, source)
        self.emit(
            EventType.SPREAD,
            now,
            country=name,
            source=source,
            via="neighbor",
            intensity=infection.intensity,
        )
        self.economy.grant_xp(
            self.tuning.spread_infection_xp, "spread", {"country": name, "source": source}, now
        )
        return True

    # -------------------------------------------------------------------------
    # Tick
    # -------------------------------------------------------------------------

    @_locked
    def tick(self, now: float | None = None) -> bool:
        """
        Advance the simulation to `now` (epoch ms).

        Returns True if time advanced. Non-finite timestamps and timestamps
        at or before the last tick are no-ops.
        """
        current = self.now() if now is None else parse_number(now, math.nan)
        if not math.isfinite(current):
            return False

        delta = (current - self.last_tick) / 1000
        if delta <= 0:
            return False

        self._passive_xp(current)
        self._maybe_world_event(current)
        self._decay_exposures(current, delta)
        self._propagate(current, delta)
        self._sweep_exposures(current)

        self.last_tick = current
        return True

    def _passive_xp(self, now: float) -> None:
        state = self.progression
        if state.last_passive_xp_at is None:
            state.last_passive_xp_at = now
            return

        interval = self.tuning.passive_xp_interval_ms
        if self._has_flag(Flag.XP_PULSE_BOOST):
            interval *= self.tuning.passive_xp_boost_factor
        if now - state.last_passive_xp_at < interval:
            return

        amount = self.rng.randint(self.tuning.passive_xp_min, self.tuning.passive_xp_max)
        windfall = 0
        if (
            self._has_flag(Flag.CAPITAL_WINDFALL)
            and self.rng.random() < self.tuning.passive_windfall_chance
        ):
            windfall = self.rng.randint(
                self.tuning.passive_windfall_min, self.tuning.passive_windfall_max
            )
            state.capital = round(state.capital + windfall, 2)

        state.last_passive_xp_at = now
        self.mark_progression_dirty()
        self.emit(EventType.PASSIVE_XP, now, amount=amount, windfall=windfall)
        self.economy.grant_xp(amount, "passive", {"windfall": windfall}, now)

    def _maybe_world_event(self, now: float) -> WorldEventKind | None:
        if now - self._last_world_event_at < self.tuning.world_event_cooldown_ms:
            return None

        chance = world_event_chance(
            self.tuning.world_event_chance,
            self._has_flag(Flag.WHO_DAMPENER),
            self.tuning.who_dampener_factor,
        )
        if self.rng.random() >= chance:
            return None

        self._last_world_event_at = now
        kind = choose_world_event(self.rng.random(), bool(self.infections))

        if kind == WorldEventKind.CONTAINMENT:
            self._containment(now)
        elif kind == WorldEventKind.CAPITAL_WINDFALL:
            amount = self.rng.randint(self.tuning.windfall_min, self.tuning.windfall_max)
            self.progression.capital = round(self.progression.capital + amount, 2)
            self.mark_progression_dirty()
            self.emit(EventType.CAPITAL_WINDFALL, now, amount=amount)
        elif kind == WorldEventKind.XP_GRANT:
            self.emit(EventType.WORLD_XP, now, amount=self.tuning.world_xp)
            self.economy.grant_xp(self.tuning.world_xp, "world_event", {}, now)
        else:
            self._inject_exposure(now)

        logger.debug(f"Player {self.player_id}: world event {kind.value}")
        return kind

    def _containment(self, now: float) -> None:
        severity = 1.0
        if self._has_flag(Flag.AV_SPOOFING):
            severity = self.tuning.av_spoofing_factor

        removed: list[str] = []
        for name, infection in list(self.infections.items()):
            reduction = self.rng.uniform(self.tuning.containment_min, self.tuning.containment_max)
            infection.intensity = clamp01(infection.intensity - reduction * severity)
            if infection.intensity <= self.tuning.containment_floor:
                del self.infections[name]
                removed.append(name)

        self.emit(
            EventType.CONTAINMENT,
            now,
            affected=len(self.infections) + len(removed),
            removed=removed,
        )

    def _inject_exposure(self, now: float) -> None:
        candidates = [name for name in self.countries.names() if name not in self.infections]
        if not candidates:
            return
        target = self.rng.choice(candidates)
        amount = self.rng.uniform(self.tuning.injection_min, self.tuning.injection_max)
        progress = min(self.exposure.get(target, 0.0) + amount, self.tuning.exposure_cap)
        self.exposure[target] = progress
        self.emit(EventType.EXPOSURE_INJECTED, now, country=target, progress=round(progress, 4))

    def _decay_exposures(self, now: float, delta: float) -> None:
        stealth_mitigation = 1 + self.tuning.decay_stealth_weight * self.attributes.stealth
        resilience_mitigation = 1 + self.tuning.decay_resilience_weight * self.attributes.resilience
        slow = self._has_flag(Flag.AV_DECAY_SLOW)

        for name, progress in list(self.exposure.items()):
            country = self.countries.get(name)
            if country is None:
                self._drop_entry("exposure", name, now)
                continue

            decay = (self.tuning.decay_base + self.tuning.decay_security_weight * country.security) * delta
            if slow:
                decay *= self.tuning.av_decay_slow_factor
            remaining = progress - decay / (stealth_mitigation * resilience_mitigation)
            if remaining <= self.tuning.decay_epsilon:
                del self.exposure[name]
            else:
                self.exposure[name] = min(remaining, self.tuning.exposure_cap)

    def _propagate(self, now: float, delta: float) -> None:
        if not self.infections:
            return

        base_power = self.base_power()
        cap = self.tuning.exposure_cap

        for source_name, infection in list(self.infections.items()):
            if self.countries.get(source_name) is None:
                self._drop_entry("infection", source_name, now)
                continue

            infection.intensity = clamp01(
                infection.intensity + base_power * delta * self.tuning.intensity_growth
            )

            for neighbor in self.countries.neighbors(source_name):
                if neighbor in self.infections:
                    continue
                if self._is_gated(neighbor):
                    self._ensure_challenge(neighbor, now)
                    continue

                rate = self.spread_rate(source_name, neighbor, base_power)
                if rate <= 0:
                    continue

                gain = rate * delta
                accumulated = self.exposure.get(neighbor, 0.0) + gain
                if accumulated >= 1:
                    self._convert_exposure(
                        neighbor, now, source_name, clamp01(base_power + rate)
                    )
                    continue

                progress = min(accumulated, cap)
                self.exposure[neighbor] = progress
                self.emit(
                    EventType.EXPOSURE_PROGRESS,
                    now,
                    country=neighbor,
                    source=source_name,
                    progress=round(progress, 4),
                )
                self.economy.grant_xp(
                    gain * self.tuning.exposure_xp_per_progress,
                    "exposure",
                    {"country": neighbor},
                    now,
                )

    def _sweep_exposures(self, now: float) -> None:
        """Convert exposures that reached 1 without being converted above."""
        for name, progress in list(self.exposure.items()):
            if progress < 1:
                continue
            if name in self.infections:
                del self.exposure[name]
                continue
            self._convert_exposure(name, now, "sweep", self.base_power())

    def _drop_entry(self, kind: str, name: str, now: float) -> None:
        if kind == "infection":
            self.infections.pop(name, None)
        else:
            self.exposure.pop(name, None)
        self._report_dropped(kind, name, now)

    # -------------------------------------------------------------------------
    # Progression economy
    # -------------------------------------------------------------------------

    @_locked
    def grant_xp(self, amount: float, reason: str = "", context: dict | None = None) -> XpGrant:
        return self.economy.grant_xp(amount, reason, context)

    @_locked
    def unlock_skill(self, skill_id: str) -> Skill:
        return self.economy.unlock_skill(skill_id)

    @_locked
    def purchase_company(self, company_id: str) -> Company:
        return self.economy.purchase_company(company_id)

    @_locked
    def hire_employee(self, company_id: str, employee_id: str) -> Employee:
        return self.economy.hire_employee(company_id, employee_id)

    # -------------------------------------------------------------------------
    # AV bypass
    # -------------------------------------------------------------------------

    @_locked
    def attempt_av_bypass(self, challenge_id: str, answer: str | None) -> BypassResult:
        """
        Verify an answer to a pending challenge.

        A wrong answer leaves the challenge pending for another try.

        Raises:
            ChallengeNotFoundError: no pending challenge has this id
            IncorrectBypassAnswerError: trimmed answer isn't an exact match
        """
        challenge = next(
            (c for c in self.pending_challenges.values() if c.id == challenge_id),
            None,
        )
        if challenge is None:
            raise ChallengeNotFoundError(challenge_id)

        now = self.now()
        submitted = "" if answer is None else str(answer).strip()
        if submitted != challenge.expected:
            self.emit(
                EventType.AV_BYPASS_FAILED,
                now,
                country=challenge.country,
                vendor=challenge.vendor,
                challenge_id=challenge.id,
            )
            raise IncorrectBypassAnswerError(challenge.id, challenge.country)

        del self.pending_challenges[challenge.country]
        self.progression.av_bypass[challenge.country] = AvBypassRecord(
            vendor=challenge.vendor,
            tier=challenge.tier,
            unlocked=True,
            unlocked_at=now,
        )
        self.mark_progression_dirty()
        self.emit(
            EventType.AV_BYPASSED,
            now,
            country=challenge.country,
            vendor=challenge.vendor,
            tier=challenge.tier,
            reward_xp=challenge.reward_xp,
        )
        self.economy.grant_xp(
            challenge.reward_xp, "av_bypass", {"country": challenge.country}, now
        )
        logger.info(f"Player {self.player_id}: bypassed {challenge.vendor} in {challenge.country}")

        return BypassResult(
            country=challenge.country,
            vendor=challenge.vendor,
            tier=challenge.tier,
            reward_xp=challenge.reward_xp,
            unlocked_at=now,
        )

    # -------------------------------------------------------------------------
    # Persistence handshake
    # -------------------------------------------------------------------------

    @_locked
    def get_persistable_progression(self) -> ProgressionState:
        """
        Copy of the progression for the persistence collaborator.

        A dirty session moves to SAVING; mark_progression_saved() completes
        the save. Mutations in between put it back to DIRTY.
        """
        if self._sync == ProgressionSync.DIRTY:
            self._sync = ProgressionSync.SAVING
        return self.progression.model_copy(deep=True)

    @_locked
    def is_progression_dirty(self) -> bool:
        return self._sync != ProgressionSync.CLEAN

    @_locked
    def mark_progression_saved(self) -> None:
        if self._sync == ProgressionSync.SAVING:
            self._sync = ProgressionSync.CLEAN

    @property
    @_locked
    def progression_sync(self) -> ProgressionSync:
        return self._sync

    # -------------------------------------------------------------------------
    # Views
    # -------------------------------------------------------------------------

    def _metrics(self, name: str) -> CountryMetrics | None:
        country = self.countries.get(name)
        if country is None:
            return None
        return CountryMetrics(
            code=country.code,
            region=country.region,
            security=country.security,
            connectivity=country.connectivity,
            population=country.population,
            protected=country.protected,
        )

    @property
    @_locked
    def events(self) -> list[dict]:
        return [event.to_dict() for event in self.bus.get_history()]

    @property
    @_locked
    def challenges(self) -> list[ChallengeView]:
        return [c.public_view() for c in self.pending_challenges.values()]

    @_locked
    def get_snapshot(self) -> SessionSnapshot:
        """Serializable view of the whole session. Read-only."""
        infected = sorted(
            (
                InfectionView(
                    country=name,
                    infected_at=infection.infected_at,
                    intensity=round(infection.intensity, 3),
                    source=infection.source,
                    metrics=self._metrics(name),
                )
                for name, infection in self.infections.items()
            ),
            key=lambda view: view.infected_at,
        )
        exposures = sorted(
            (
                ExposureView(
                    country=name,
                    progress=round(min(progress, self.tuning.exposure_cap), 3),
                    metrics=self._metrics(name),
                )
                for name, progress in self.exposure.items()
            ),
            key=lambda view: view.progress,
            reverse=True,
        )

        state = self.progression
        progression = ProgressionView(
            level=state.level,
            xp=state.xp,
            xp_to_next=state.xp_to_next,
            skill_points=state.skill_points,
            capital=state.capital,
            unlocked_skills=list(state.unlocked_skills),
            flags=list(state.flags),
            blueprints=list(state.blueprints),
            companies=list(state.companies),
            employees=list(state.employees),
            av_bypass={k: v.model_copy() for k, v in state.av_bypass.items()},
            dirty=self._sync != ProgressionSync.CLEAN,
        )

        return SessionSnapshot(
            player_id=self.player_id,
            malware_quality=self.malware_quality,
            base_attributes=self.base_attributes.model_copy(),
            attributes=self.attributes.model_copy(),
            base_power=round(self.base_power(), 4),
            total_infected=self.total_infected,
            active_infections=len(self.infections),
            infected_countries=infected,
            pending_exposures=exposures,
            pending_challenges=self.challenges,
            events=[e.to_dict() for e in self.bus.recent(self.tuning.snapshot_event_count)],
            progression=progression,
            last_tick=self.last_tick,
        )

    @_locked
    def get_summary(self) -> PlayerSummary:
        return PlayerSummary(
            player_id=self.player_id,
            malware_quality=self.malware_quality,
            level=self.progression.level,
            capital=self.progression.capital,
            active_infections=len(self.infections),
            pending_targets=len(self.exposure),
            pending_challenges=len(self.pending_challenges),
            total_infected=self.total_infected,
            last_tick=self.last_tick,
        )

    def __repr__(self) -> str:
        return (
            f"PlayerSession({self.player_id!r}, infected={len(self.infections)}, "
            f"level={self.progression.level})"
        )
