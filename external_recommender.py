"""
External AI recommender client.

The AI service takes the raw vibe text and answers with ranked ideal
profiles (strain type, preferred category, dominant terpenes), effect labels,
and optional narrative. Its product IDs are placeholders; the engine only uses
the characteristics to boost local scores.
"""

from __future__ import annotations

import logging
from typing import Optional, Protocol

import httpx
from pydantic import ValidationError

from models import AIRecommendationResponse

logger = logging.getLogger(__name__)


class ExternalRecommenderError(Exception):
    """The AI service was unreachable or answered with something unusable."""


class ExternalRecommender(Protocol):
    async def get_recommendations(self, vibe: str) -> Optional[AIRecommendationResponse]:
        ...


class DisabledRecommender:
    """Used when no AI endpoint is configured."""

    async def get_recommendations(self, vibe: str) -> Optional[AIRecommendationResponse]:
        return None


class HttpExternalRecommender:
    """POSTs {"vibe": ...} to the AI recommendations endpoint."""

    def __init__(
        self,
        url: str,
        api_key: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
            headers["apikey"] = self.api_key
        return headers

    async def get_recommendations(self, vibe: str) -> Optional[AIRecommendationResponse]:
        try:
            resp = await self.client.post(
                self.url, json={"vibe": vibe}, headers=self._headers()
            )
        except httpx.HTTPError as e:
            raise ExternalRecommenderError(f"AI recommender request failed: {e}") from e

        if resp.status_code >= 400:
            raise ExternalRecommenderError(
                f"AI recommender returned HTTP {resp.status_code}: {resp.text[:200]}"
            )

        try:
            parsed = AIRecommendationResponse.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise ExternalRecommenderError(f"Malformed AI recommender response: {e}") from e

        if parsed.error:
            logger.info("AI recommender declined query: %s", parsed.error)
        logger.debug(
            "AI recommender returned %d recommendations for %r",
            len(parsed.recommendations), vibe,
        )
        return parsed

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None


def build_recommender(settings) -> ExternalRecommender:
    """Pick the recommender implementation for the given Settings."""
    if not settings.ai_recommender_url:
        logger.info("AI recommender disabled (no ai_recommender_url)")
        return DisabledRecommender()
    return HttpExternalRecommender(
        url=settings.ai_recommender_url,
        api_key=settings.ai_recommender_api_key,
        timeout=settings.ai_recommender_timeout_seconds,
    )
