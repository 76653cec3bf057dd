"""Tests for narrative.py — local budtender copy and context factors."""

from __future__ import annotations

import pytest

from narrative import (
    CATEGORY_MESSAGES, DEFAULT_MESSAGE, local_context_factors,
    local_personalized_message,
)


class TestPersonalizedMessage:

    @pytest.mark.parametrize("vibe, opening", [
        ("activity: movie night", "Perfect for movie night!"),
        ("activity: hiking", "Adventure awaits!"),
        ("activity: gym session", "Ready to get active?"),
        ("relaxed", "Time to unwind!"),
        ("SLEEPY", "Sweet dreams ahead!"),
        ("need pain relief", "Relief is on the way!"),
    ])
    def test_keyword_messages(self, vibe, opening):
        assert local_personalized_message(vibe).startswith(opening)

    def test_unknown_activity_mentions_it(self):
        msg = local_personalized_message("activity: laundry day")
        assert msg.startswith("Perfect for your laundry day!")

    def test_category_message_when_no_vibe_hit(self):
        assert local_personalized_message("show me vapes", "vaporizer") == CATEGORY_MESSAGES["vaporizer"]

    def test_vibe_beats_category(self):
        assert local_personalized_message("relaxing edibles", "edible").startswith("Time to unwind!")

    def test_default(self):
        assert local_personalized_message("surprise me") == DEFAULT_MESSAGE


class TestContextFactors:

    def test_vibe_factors(self):
        assert local_context_factors("calm evening") == [
            "calming", "stress-relief", "comfortable", "tension-relief",
        ]

    def test_vibe_and_category_combine(self):
        factors = local_context_factors("sleepy", "edible")
        assert factors == [
            "sedating", "sleep-aid", "nighttime", "restful",
            "long-lasting", "discreet", "precise-dosing",
        ]

    def test_activity_factors(self):
        assert local_context_factors("activity: hiking")[0] == "portable"

    def test_unknown_activity(self):
        assert local_context_factors("activity: laundry") == [
            "activity-optimized", "versatile", "balanced",
        ]

    def test_category_only(self):
        assert local_context_factors("anything", "concentrate") == [
            "potent", "pure", "experienced-user",
        ]

    def test_default(self):
        assert local_context_factors("surprise me") == ["balanced", "versatile", "reliable"]
