"""
AV bypass challenge generator.

Synthesizes a human-solvable prompt and its exact expected answer for a
protected country. The prompt embeds a token built from vendor, country and
tier plus random entropy; the answer is produced by the same template's rule.

Pure apart from the injected random source and uuid-based ids.
"""

import random
import re
from dataclasses import dataclass
from typing import Callable
from uuid import uuid4

from ..catalog.graph import AntivirusProfile
from ..state.schema import PendingAvChallenge


@dataclass(frozen=True)
class PromptTemplate:
    id: str
    prompt: Callable[[str, str, str], str]   # (vendor, country, token) -> prompt
    expected: Callable[[str], str]           # token -> exact answer


PROMPT_TEMPLATES: tuple[PromptTemplate, ...] = (
    PromptTemplate(
        id="inject-patch",
        prompt=lambda vendor, country, token: (
            f'Bypass {vendor} in {country}: type patch.override("{token}") '
            "to inject the patch."
        ),
        expected=lambda token: f'patch.override("{token}")',
    ),
    PromptTemplate(
        id="cipher-scramble",
        prompt=lambda vendor, country, token: (
            f"Firewall {vendor} blocks outbound payloads in {country}. "
            f"Enter cipher.scramble('{token}') to re-key packets."
        ),
        expected=lambda token: f"cipher.scramble('{token}')",
    ),
    PromptTemplate(
        id="handshake",
        prompt=lambda vendor, country, token: (
            f"Synthetic handshake required: confirm with "
            f"handshake.sign('{token}', 'OK') to pierce {vendor} in {country}."
        ),
        expected=lambda token: f"handshake.sign('{token}', 'OK')",
    ),
)


def default_reward_xp(tier: int) -> int:
    return 60 + 10 * tier


def _tag(text: str, length: int) -> str:
    return re.sub(r"[^A-Z0-9]", "", text.upper())[:length]


def generate_token(vendor: str, country: str, tier: int, rng: random.Random) -> str:
    """e.g. SENTIN_UNI_54821 for Sentinel ICE, United States, tier 5."""
    entropy = rng.randint(1000, 9999)
    return f"{_tag(vendor, 6)}_{_tag(country, 3)}_{tier}{entropy}"


def build_av_challenge(
    country: str,
    profile: AntivirusProfile | None,
    rng: random.Random | None = None,
    now: float = 0.0,
) -> PendingAvChallenge:
    """
    Issue a fresh challenge for a protected country.

    Args:
        country: Canonical country name
        profile: The country's AV profile (vendor/tier/reward)
        rng: Random source for template choice and token entropy
        now: Issue time in epoch milliseconds

    Returns:
        PendingAvChallenge with a unique id
    """
    rng = rng or random.Random()
    profile = profile or AntivirusProfile()

    vendor = profile.vendor or "Generic Shield"
    tier = profile.tier or 1
    template = rng.choice(PROMPT_TEMPLATES)
    token = generate_token(vendor, country, tier, rng)
    reward = profile.reward_xp if profile.reward_xp else default_reward_xp(tier)

    return PendingAvChallenge(
        id=f"av-{uuid4().hex[:12]}",
        country=country,
        vendor=vendor,
        tier=tier,
        prompt=template.prompt(vendor, country, token),
        expected=template.expected(token),
        reward_xp=reward,
        template=template.id,
        issued_at=now,
    )
