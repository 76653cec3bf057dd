"""Shared fixtures for the vibe recommender test suite."""

from __future__ import annotations

from typing import Optional

import pytest

from models import AIRecommendationResponse, ProductWithVariant, Variant


@pytest.fixture
def make_product():
    """Factory that builds ProductWithVariant records with sensible defaults.

    Any keyword argument overrides the default. Pass ``variant=None`` to build
    a product without a variant.
    """
    counter = {"n": 0}

    def _make(
        *,
        id=None,
        name="Test Flower 3.5g",
        brand="Cookies",
        category="flower",
        strain_type="hybrid",
        terpenes=None,
        inventory_level=20,
        is_available=True,
        price=35.0,
        **overrides,
    ):
        counter["n"] += 1
        pid = id or f"prod-{counter['n']:03d}"
        variant = overrides.pop("variant", "default")
        if variant == "default":
            variant = Variant(
                id=f"{pid}-v1",
                product_id=pid,
                price=price,
                thc_percentage=22.0,
                terpene_profile=terpenes if terpenes is not None else {},
                inventory_level=inventory_level,
                is_available=is_available,
            )
        return ProductWithVariant(
            id=pid,
            name=name,
            brand=brand,
            category=category,
            strain_type=strain_type,
            variant=variant,
            **overrides,
        )

    return _make


class FakeRecommender:
    """Returns a canned AI response, or raises when given an exception."""

    def __init__(self, response: Optional[AIRecommendationResponse] = None,
                 error: Optional[Exception] = None):
        self.response = response
        self.error = error
        self.calls: list[str] = []

    async def get_recommendations(self, vibe: str) -> Optional[AIRecommendationResponse]:
        self.calls.append(vibe)
        if self.error is not None:
            raise self.error
        return self.response


class FailingSearchLog:
    def __init__(self):
        self.attempts = 0

    async def log_search(self, search_phrase, user_type, product_ids, organization_id):
        self.attempts += 1
        raise ConnectionError("search_queries insert failed")


@pytest.fixture
def ai_response():
    """AI response favouring indica flower with myrcene."""
    return AIRecommendationResponse.model_validate({
        "recommendations": [
            {
                "productId": "rec1",
                "confidence": 0.9,
                "reason": "Myrcene-forward indica for unwinding",
                "idealProfile": {
                    "strainType": "indica",
                    "dominantTerpenes": ["myrcene", "linalool"],
                    "thcRange": "medium",
                    "preferredCategory": "flower",
                },
            }
        ],
        "effects": ["Relaxation", "Calm"],
        "query_analyzed": "User wants to relax",
        "personalizedMessage": "Time to unwind with something mellow.",
        "contextFactors": ["calming", "evening"],
    })
