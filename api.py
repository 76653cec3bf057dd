"""
Dispensary Vibe Recommender — FastAPI Application Layer

Endpoints:
  1. POST /recommend      — Vibe-based product recommendation (paginated)
  2. POST /vibes/parse    — Vibe query → terpene profile + effects
  3. GET  /vibes          — Vibe → terpene mapping table
  4. GET  /health         — Health check
"""
from __future__ import annotations
import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from config import Settings, configure_logging, get_settings
from external_recommender import ExternalRecommender, build_recommender
from models import (
    HealthResponse, ParseVibeRequest, ParseVibeResponse,
    RecommendRequest, RecommendResponse,
)
from narrative import local_context_factors, local_personalized_message
from recommendation_engine import RecommendationEngine
from repository import (
    CatalogRepository, InMemoryCatalog, InMemorySearchLog, SearchQueryLogger,
)
from vibe_parser import VIBE_MAPPINGS, detect_category, parse_vibe

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# ============================================================
# Application State (shared singletons)
# ============================================================

class AppState:
    """Holds all shared service instances."""
    settings: Settings
    catalog: CatalogRepository
    search_logger: SearchQueryLogger
    recommender: ExternalRecommender
    engine: Optional[RecommendationEngine]
    db: Any
    start_time: float
    request_count: int = 0

    def __init__(self):
        self.start_time = time.monotonic()
        self.request_count = 0
        self.engine = None
        self.db = None


_state = AppState()


def install_state(
    catalog: CatalogRepository,
    recommender: ExternalRecommender,
    search_logger: SearchQueryLogger,
    settings: Optional[Settings] = None,
) -> AppState:
    """Wire services into the app state; lifespan skips setup when already wired."""
    _state.settings = settings or get_settings()
    _state.catalog = catalog
    _state.recommender = recommender
    _state.search_logger = search_logger
    _state.engine = RecommendationEngine(
        external_recommender=recommender,
        search_logger=search_logger,
    )
    return _state


async def _build_from_settings(cfg: Settings) -> None:
    recommender = build_recommender(cfg)

    if cfg.catalog_source == "postgres":
        from asyncpg_repository import (
            AsyncPGCatalogRepository, AsyncPGSearchQueryLogger, DatabasePool,
        )
        db = DatabasePool(cfg.asyncpg_dsn, cfg.db_pool_min, cfg.db_pool_max)
        await db.initialize()
        _state.db = db
        install_state(AsyncPGCatalogRepository(db), recommender,
                      AsyncPGSearchQueryLogger(db), cfg)
    else:
        catalog = (InMemoryCatalog.from_json_file(cfg.catalog_file)
                   if cfg.catalog_file else InMemoryCatalog())
        install_state(catalog, recommender, InMemorySearchLog(), cfg)


# ============================================================
# Lifespan: Startup / Shutdown
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize services on startup, cleanup on shutdown."""
    if _state.engine is None:
        cfg = get_settings()
        configure_logging(cfg)
        logger.info("Starting vibe recommender...")
        await _build_from_settings(cfg)
        logger.info(
            "System ready. catalog=%s ai=%s", cfg.catalog_source,
            "enabled" if cfg.ai_enabled else "disabled",
        )
    yield

    logger.info("Shutting down vibe recommender...")
    if _state.engine is not None:
        await _state.engine.drain_background_tasks()
    close = getattr(_state.recommender, "close", None)
    if close is not None:
        await close()
    if _state.db is not None:
        await _state.db.close()


# ============================================================
# FastAPI App
# ============================================================

app = FastAPI(
    title="Vibe Recommender API",
    description="Terpene-profile product recommendations for dispensary kiosks "
                "and staff tools.",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origin_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def timing_middleware(request: Request, call_next):
    start = time.monotonic()
    _state.request_count += 1
    response = await call_next(request)
    elapsed = int((time.monotonic() - start) * 1000)
    response.headers["X-Response-Time-Ms"] = str(elapsed)
    return response


# ============================================================
# 1. POST /recommend — Vibe Recommendation
# ============================================================

@app.post("/recommend", response_model=RecommendResponse, tags=["Recommendations"])
async def recommend_products(request: RecommendRequest):
    """
    Rank in-stock products for a vibe query.

    Page through results by re-sending the query with offset += page_size.
    AI narrative appears on the first page only; when the AI service did not
    contribute, fallback_message / fallback_context_factors carry local copy.
    """
    start = time.monotonic()
    cfg = _state.settings
    page_size = min(request.page_size or cfg.default_page_size, cfg.max_page_size)

    try:
        catalog = await _state.catalog.list_products(request.organization_id)
    except Exception:
        logger.exception("Catalog load failed")
        raise HTTPException(503, "Product catalog unavailable")

    try:
        result = await _state.engine.recommend(
            catalog,
            request.vibe,
            user_type=request.user_type,
            page_size=page_size,
            organization_id=request.organization_id,
            offset=request.offset,
        )
    except Exception as e:
        logger.exception("Recommendation failed")
        raise HTTPException(500, f"Recommendation error: {str(e)}")

    fallback_message = None
    fallback_factors = None
    if not result.is_ai_powered and request.offset == 0 and result.products:
        category = detect_category(request.vibe)
        fallback_message = local_personalized_message(request.vibe, category)
        fallback_factors = local_context_factors(request.vibe, category)

    elapsed = int((time.monotonic() - start) * 1000)
    logger.info(
        "[recommend] user_type=%s org=%s results=%d ai=%s time=%dms",
        request.user_type.value, request.organization_id,
        len(result.products), result.is_ai_powered, elapsed,
    )

    return RecommendResponse(
        products=result.products,
        effects=result.effects,
        is_ai_powered=result.is_ai_powered,
        personalized_message=result.personalized_message,
        context_factors=result.context_factors,
        fallback_message=fallback_message,
        fallback_context_factors=fallback_factors,
        total_available=result.total_available,
        offset=request.offset,
        has_more=request.offset + len(result.products) < result.total_available,
        response_time_ms=elapsed,
    )


# ============================================================
# 2. POST /vibes/parse — Vibe Parsing
# ============================================================

@app.post("/vibes/parse", response_model=ParseVibeResponse, tags=["Vibes"])
async def parse_vibe_query(request: ParseVibeRequest):
    """Show how a query maps to terpenes and effects (staff tooling)."""
    mappings = _state.engine.vibe_mappings if _state.engine else VIBE_MAPPINGS
    parsed = parse_vibe(request.query, mappings)
    return ParseVibeResponse(
        query=request.query,
        terpene_profile=parsed.terpene_profile,
        effects=parsed.effects,
        category=detect_category(request.query),
    )


# ============================================================
# 3. GET /vibes — Mapping Table
# ============================================================

@app.get("/vibes", tags=["Vibes"])
async def list_vibes():
    mappings = _state.engine.vibe_mappings if _state.engine else VIBE_MAPPINGS
    return {
        "vibes": [
            {"vibe": name, "terpenes": m.terpenes, "effects": m.effects}
            for name, m in mappings.items()
        ]
    }


# ============================================================
# 4. GET /health — Health Check
# ============================================================

@app.get("/health", response_model=HealthResponse, tags=["System"])
async def health_check():
    """System health check."""
    uptime = int(time.monotonic() - _state.start_time)
    cfg = _state.settings

    components = {
        "catalog": {
            "status": "healthy",
            "source": cfg.catalog_source,
        },
        "recommendation_engine": {"status": "healthy"},
        "ai_recommender": {
            "status": "enabled" if cfg.ai_enabled else "disabled",
        },
    }
    if isinstance(_state.catalog, InMemoryCatalog):
        components["catalog"]["products"] = len(_state.catalog.products)

    return HealthResponse(
        status="healthy",
        components=components,
        version=VERSION,
        uptime_seconds=uptime,
        request_count=_state.request_count,
    )


# ============================================================
# Entry Point
# ============================================================

if __name__ == "__main__":
    import uvicorn
    cfg = get_settings()
    configure_logging(cfg)
    uvicorn.run(app, host=cfg.host, port=cfg.port, log_level=cfg.log_level.lower())
