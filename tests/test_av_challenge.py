"""Tests for AV bypass challenge generation."""

import random
import re

from outbreak.catalog.graph import AntivirusProfile
from outbreak.systems.av_challenge import (
    PROMPT_TEMPLATES,
    build_av_challenge,
    default_reward_xp,
    generate_token,
)


class TestToken:
    """Challenge tokens."""

    def test_format(self):
        token = generate_token("Sentinel ICE", "United States", 5, random.Random(1))
        assert re.fullmatch(r"SENTIN_UNI_5\d{4}", token)

    def test_strips_punctuation(self):
        """Non-alphanumerics are removed before truncating."""
        token = generate_token("Great Firewall++", "Saudi Arabia", 4, random.Random(1))
        assert token.startswith("GREATF_SAU_4")

    def test_short_names(self):
        token = generate_token("X", "B", 1, random.Random(1))
        assert re.fullmatch(r"X_B_1\d{4}", token)


class TestBuildChallenge:
    """Challenge construction."""

    def test_fields(self):
        profile = AntivirusProfile(vendor="Aegis Shield", tier=4, reward_xp=115)
        challenge = build_av_challenge("Germany", profile, random.Random(3), now=1234.0)

        assert challenge.country == "Germany"
        assert challenge.vendor == "Aegis Shield"
        assert challenge.tier == 4
        assert challenge.reward_xp == 115
        assert challenge.issued_at == 1234.0
        assert challenge.id.startswith("av-")
        assert challenge.template in {t.id for t in PROMPT_TEMPLATES}

    def test_default_reward(self):
        """Without a profile reward, tiers pay 60 + 10 per tier."""
        assert default_reward_xp(1) == 70
        assert default_reward_xp(5) == 110

        challenge = build_av_challenge("Spain", AntivirusProfile(tier=3), random.Random(3))
        assert challenge.reward_xp == 90

    def test_missing_profile(self):
        """A missing profile falls back to the generic shield."""
        challenge = build_av_challenge("Nowhere", None, random.Random(3))
        assert challenge.vendor == "Generic Shield"
        assert challenge.tier == 1

    def test_prompt_mentions_answer_token(self):
        """The prompt tells the player exactly what to type."""
        for seed in range(20):
            challenge = build_av_challenge(
                "France", AntivirusProfile(vendor="Aegis Shield", tier=4), random.Random(seed)
            )
            token = re.search(r"AEGISS_FRA_4\d{4}", challenge.expected).group(0)
            assert token in challenge.prompt
            assert "Aegis Shield" in challenge.prompt
            assert "France" in challenge.prompt

    def test_expected_matches_template(self):
        for template in PROMPT_TEMPLATES:
            expected = template.expected("TOKEN_1")
            assert "TOKEN_1" in expected
            assert expected in template.prompt("Vendor", "Country", "TOKEN_1")

    def test_unique_ids(self):
        rng = random.Random(9)
        ids = {build_av_challenge("Japan", None, rng).id for _ in range(50)}
        assert len(ids) == 50

    def test_seeded_rng_repeats_prompt(self):
        """Same seed, same prompt and answer."""
        profile = AntivirusProfile(vendor="Kitsune Watch", tier=4)
        a = build_av_challenge("Japan", profile, random.Random(42))
        b = build_av_challenge("Japan", profile, random.Random(42))
        assert a.prompt == b.prompt
        assert a.expected == b.expected
        assert a.id != b.id

    def test_expected_excluded_from_dump(self):
        challenge = build_av_challenge("Japan", None, random.Random(1))
        assert "expected" not in challenge.model_dump()
        assert "expected" not in challenge.public_view().model_dump()
