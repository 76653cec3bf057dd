"""
Dispensary Vibe Recommender — Recommendation Engine

Responsibilities:
  1. Vibe query → category filter + target terpene profile
  2. Availability filtering (in stock, available variants only)
  3. Optional AI boost from the external recommender
  4. Blended scoring, stable ranking, offset pagination
  5. Fire-and-forget search logging for the first page
"""
from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence

from external_recommender import ExternalRecommender
from models import (
    AIRecommendationResponse, CallerRole, ProductWithVariant,
    RecommendationResult, UserType, VibeMapping,
)
from repository import SearchQueryLogger
from scoring import (
    AI_WEIGHTS, LOCAL_WEIGHTS, ScoringWeights, ai_boost, blended_score,
)
from vibe_parser import VIBE_MAPPINGS, ParsedVibe, detect_category, parse_vibe

logger = logging.getLogger(__name__)


@dataclass
class ScoredCandidate:
    product: ProductWithVariant
    score: float


def filter_candidates(
    catalog: Sequence[ProductWithVariant],
    category: Optional[str] = None,
) -> list[ProductWithVariant]:
    """Keep in-stock, available products, optionally of one category."""
    available = [p for p in catalog if p.is_recommendable]
    if category:
        available = [p for p in available if p.category == category]
    return available


def rank(candidates: list[ScoredCandidate]) -> list[ProductWithVariant]:
    """Score-descending; ties keep catalog order (sorted() is stable)."""
    return [c.product for c in sorted(candidates, key=lambda c: c.score, reverse=True)]


def paginate(
    ranked: list[ProductWithVariant], offset: int, page_size: int,
) -> list[ProductWithVariant]:
    if page_size <= 0:
        return []
    return ranked[offset:offset + page_size]


class RecommendationEngine:
    """
    Main recommendation engine. Orchestrates:
      vibe parsing → candidate filtering → AI boost (optional) →
      scoring → ranking → pagination → search logging

    Stateless across calls; callers thread `offset` through for "load more".
    """

    def __init__(
        self,
        external_recommender: Optional[ExternalRecommender] = None,
        search_logger: Optional[SearchQueryLogger] = None,
        vibe_mappings: Optional[Mapping[str, VibeMapping]] = None,
        local_weights: ScoringWeights = LOCAL_WEIGHTS,
        ai_weights: ScoringWeights = AI_WEIGHTS,
    ):
        self.external_recommender = external_recommender
        self.search_logger = search_logger
        self.vibe_mappings = VIBE_MAPPINGS if vibe_mappings is None else vibe_mappings
        self.local_weights = local_weights
        self.ai_weights = ai_weights
        self._background: set[asyncio.Task] = set()

    async def recommend(
        self,
        catalog: Sequence[ProductWithVariant],
        vibe_query: str,
        user_type: UserType | str = UserType.KIOSK,
        page_size: int = 3,
        organization_id: Optional[str] = None,
        offset: int = 0,
    ) -> RecommendationResult:
        """Rank the catalog for a vibe query. Never raises for catalog data."""
        start = time.monotonic()
        offset = max(0, offset)
        category = detect_category(vibe_query)
        logger.info(
            "Recommendation request %r (offset=%d, page_size=%d, catalog=%d, category=%s)",
            vibe_query, offset, page_size, len(catalog), category,
        )

        try:
            if not catalog:
                logger.warning("No products available for recommendations")
                return RecommendationResult()

            parsed = parse_vibe(vibe_query, self.vibe_mappings)
            candidates = filter_candidates(catalog, category)
            if not candidates:
                logger.info("No available products found for %r", vibe_query)
                return RecommendationResult(effects=parsed.effects)

            ai = await self._fetch_ai(vibe_query)
            if ai is not None and ai.recommendations:
                result = self._rank_with_ai(candidates, parsed, ai, page_size, offset)
            else:
                result = self._rank_locally(candidates, parsed, page_size, offset)

            if organization_id and offset == 0:
                self._log_search(vibe_query, user_type, result.product_ids, organization_id)

        except Exception:
            logger.exception("Recommendation engine error; using local fallback")
            parsed = parse_vibe(vibe_query, self.vibe_mappings)
            candidates = filter_candidates(catalog, category)
            if not candidates:
                return RecommendationResult(effects=parsed.effects)
            result = self._rank_locally(candidates, parsed, page_size, offset)

        elapsed = int((time.monotonic() - start) * 1000)
        logger.info(
            "Returning %d %s recommendations (%d-%d of %d) in %dms",
            len(result.products),
            "AI-enhanced" if result.is_ai_powered else "local",
            offset + 1, offset + len(result.products), result.total_available, elapsed,
        )
        return result

    # ----------------------------------------------------------
    # Scoring Paths
    # ----------------------------------------------------------

    def _rank_with_ai(
        self,
        candidates: list[ProductWithVariant],
        parsed: ParsedVibe,
        ai: AIRecommendationResponse,
        page_size: int,
        offset: int,
    ) -> RecommendationResult:
        scored = [
            ScoredCandidate(
                product=p,
                score=blended_score(
                    parsed.terpene_profile, p, self.ai_weights, boost=ai_boost(p, ai)),
            )
            for p in candidates
        ]
        ranked = rank(scored)
        first_page = offset == 0
        return RecommendationResult(
            products=paginate(ranked, offset, page_size),
            effects=list(ai.effects) if ai.effects is not None else parsed.effects,
            is_ai_powered=True,
            personalized_message=ai.personalized_message if first_page else None,
            context_factors=list(ai.context_factors)
            if first_page and ai.context_factors is not None else None,
            total_available=len(ranked),
        )

    def _rank_locally(
        self,
        candidates: list[ProductWithVariant],
        parsed: ParsedVibe,
        page_size: int,
        offset: int,
    ) -> RecommendationResult:
        scored = [
            ScoredCandidate(
                product=p,
                score=blended_score(parsed.terpene_profile, p, self.local_weights),
            )
            for p in candidates
        ]
        ranked = rank(scored)
        return RecommendationResult(
            products=paginate(ranked, offset, page_size),
            effects=parsed.effects,
            is_ai_powered=False,
            total_available=len(ranked),
        )

    # ----------------------------------------------------------
    # Collaborators
    # ----------------------------------------------------------

    async def _fetch_ai(self, vibe_query: str) -> Optional[AIRecommendationResponse]:
        """Any failure here means "no AI boost available"."""
        if self.external_recommender is None:
            return None
        try:
            return await self.external_recommender.get_recommendations(vibe_query)
        except Exception as e:
            logger.warning("AI recommender unavailable, falling back to local scoring: %s", e)
            return None

    def _log_search(
        self,
        vibe_query: str,
        user_type: UserType | str,
        product_ids: list[str],
        organization_id: str,
    ) -> None:
        if self.search_logger is None:
            return
        role = CallerRole.for_user_type(user_type)
        task = asyncio.create_task(
            self._safe_log(vibe_query, role, product_ids, organization_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _safe_log(
        self,
        vibe_query: str,
        role: CallerRole,
        product_ids: list[str],
        organization_id: str,
    ) -> None:
        try:
            await self.search_logger.log_search(vibe_query, role, product_ids, organization_id)
        except Exception:
            logger.warning(
                "Error logging search query %r for org %s", vibe_query, organization_id,
                exc_info=True,
            )

    async def drain_background_tasks(self) -> None:
        """Wait for in-flight search logging (shutdown, tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
