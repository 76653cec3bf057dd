"""
Dispensary Vibe Recommender — Scoring Functions

Pure scoring primitives used by the recommendation engine:
  - terpene_similarity: closeness of two terpene profiles, 0.0–1.0
  - inventory_score: stock-health step function, 0.0–1.0
  - ai_boost: bonus for products matching AI-suggested characteristics
  - blended_score: weighted combination of the above
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from models import AIRecommendationResponse, ProductWithVariant, TerpeneProfile


# ============================================================
# Weights
# ============================================================

@dataclass(frozen=True)
class ScoringWeights:
    """Blend weights. Local weights sum to 1.0 so local scores stay in [0, 1]."""
    terpene_weight: float = 0.8
    inventory_weight: float = 0.2
    ai_boost_cap: float = 0.0


LOCAL_WEIGHTS = ScoringWeights()
AI_WEIGHTS = ScoringWeights(terpene_weight=0.6, inventory_weight=0.2, ai_boost_cap=0.2)

AI_EFFECT_BOOST = 0.05
AI_STRAIN_BOOST = 0.1
AI_CATEGORY_BOOST = 0.05
AI_TERPENE_BOOST = 0.05


# ============================================================
# Terpene Similarity
# ============================================================

def terpene_similarity(target: TerpeneProfile, candidate: TerpeneProfile) -> float:
    """
    Average normalized closeness over terpenes present in both profiles.

    Each shared terpene contributes 1 - |t - c| / max(t, c). A terpene at 0 in
    both profiles counts as a perfect match. Returns 0.0 when either profile is
    empty or nothing is shared.
    """
    if not target or not candidate:
        return 0.0

    total = 0.0
    compared = 0
    for terpene, t in target.items():
        c = candidate.get(terpene)
        if t is None or c is None:
            continue
        peak = max(t, c)
        if t == c:
            sim = 1.0
        elif peak <= 0:
            continue  # Negative intensities carry no usable signal
        else:
            sim = 1.0 - abs(t - c) / peak
        total += min(1.0, max(0.0, sim))
        compared += 1

    if compared == 0:
        return 0.0
    return total / compared


# ============================================================
# Inventory Health
# ============================================================

def inventory_score(level: Optional[int]) -> float:
    """Deprioritize nearly sold-out items without excluding them."""
    if level is None or level <= 0:
        return 0.0
    if level <= 2:
        return 0.3  # Low stock
    if level <= 9:
        return 0.7  # Medium stock
    return 1.0


# ============================================================
# AI Boost
# ============================================================

def ai_boost(product: ProductWithVariant, ai: AIRecommendationResponse) -> float:
    """
    Uncapped bonus for a product matching the AI response:
      +0.05 per AI effect found in the name or "strain category" text
      +0.10 per recommendation whose ideal strain type matches
      +0.05 per recommendation whose preferred category matches
      +0.05 per ideal dominant terpene found in the product name
    """
    boost = 0.0
    name = product.name.lower()
    strain = product.strain_type.value if product.strain_type else ''
    traits = f"{strain} {product.category}".lower()

    for effect in ai.effects or []:
        e = effect.lower()
        if e in name or e in traits:
            boost += AI_EFFECT_BOOST

    for rec in ai.recommendations:
        ideal = rec.ideal_profile
        if ideal is None:
            continue
        if ideal.strain_type and strain == ideal.strain_type.lower():
            boost += AI_STRAIN_BOOST
        if ideal.preferred_category and product.category == ideal.preferred_category.lower():
            boost += AI_CATEGORY_BOOST
        for terpene in ideal.dominant_terpenes:
            if terpene.lower() in name:
                boost += AI_TERPENE_BOOST

    return boost


def blended_score(
    target: TerpeneProfile,
    product: ProductWithVariant,
    weights: ScoringWeights = LOCAL_WEIGHTS,
    boost: float = 0.0,
) -> float:
    """Weighted terpene + inventory score, plus the boost capped at weights.ai_boost_cap."""
    variant = product.variant
    profile = variant.terpene_profile if variant else {}
    level = variant.inventory_level if variant else 0
    score = (
        terpene_similarity(target, profile) * weights.terpene_weight
        + inventory_score(level) * weights.inventory_weight
    )
    if weights.ai_boost_cap > 0:
        score += min(boost, weights.ai_boost_cap)
    return score
