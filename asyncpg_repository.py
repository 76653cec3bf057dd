"""
asyncpg_repository.py — PostgreSQL catalog and search-log repositories.

Reads the existing products / variants tables and appends to search_queries.
Schema ownership lives with the back-office; nothing here migrates tables.
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Optional

import asyncpg

from models import CallerRole, Product, ProductWithVariant, Variant, select_variant
from repository import CatalogRepository, SearchQueryLogger

logger = logging.getLogger(__name__)

# ── Connection Pool Manager ──────────────────────────────────────────────────

class DatabasePool:
    """Manages asyncpg connection pool lifecycle."""

    def __init__(self, dsn: str, min_size: int = 2, max_size: int = 10):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[asyncpg.Pool] = None

    async def initialize(self) -> None:
        """Create connection pool and install the jsonb codec."""
        self._pool = await asyncpg.create_pool(
            self.dsn,
            min_size=self.min_size,
            max_size=self.max_size,
            command_timeout=30,
            init=self._init_connection,
        )
        logger.info(
            "Database pool initialized (min=%d, max=%d)", self.min_size, self.max_size
        )

    async def _init_connection(self, conn: asyncpg.Connection) -> None:
        """Per-connection setup: decode jsonb terpene profiles to dicts."""
        await conn.set_type_codec(
            "jsonb",
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )

    @property
    def pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool not initialized. Call initialize() first.")
        return self._pool

    @asynccontextmanager
    async def acquire(self):
        async with self.pool.acquire() as conn:
            yield conn

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            logger.info("Database pool closed")


# ── Catalog Repository ───────────────────────────────────────────────────────

_PRODUCT_COLUMNS = (
    "p.id, p.name, p.brand, p.category, p.subcategory, p.description, "
    "p.strain_type, p.genetics, p.image_url, p.created_at"
)

_VARIANT_COLUMNS = (
    "v.id, v.product_id, v.price, v.original_price, v.thc_percentage, "
    "v.cbd_percentage, v.total_cannabinoids, v.terpene_profile, "
    "v.inventory_level, v.is_available, v.size, v.weight, "
    "v.created_at, v.updated_at"
)


class AsyncPGCatalogRepository(CatalogRepository):
    """
    Loads products and variants in two queries and pairs each product with
    its representative variant (cheapest in stock, else first by created_at).
    """

    def __init__(self, db: DatabasePool):
        self.db = db

    async def list_products(self, organization_id: Optional[str] = None) -> list[ProductWithVariant]:
        where, vals = "", []
        if organization_id:
            where = "WHERE p.organization_id = $1"
            vals.append(organization_id)

        async with self.db.acquire() as conn:
            product_rows = await conn.fetch(
                f"SELECT {_PRODUCT_COLUMNS} FROM products p {where} "
                f"ORDER BY p.created_at, p.id",
                *vals,
            )
            if not product_rows:
                return []
            variant_rows = await conn.fetch(
                f"SELECT {_VARIANT_COLUMNS} FROM variants v "
                f"WHERE v.product_id = ANY($1::text[]) "
                f"ORDER BY v.created_at, v.id",
                [str(r["id"]) for r in product_rows],
            )

        variants: dict[str, list[Variant]] = defaultdict(list)
        for row in variant_rows:
            variants[str(row["product_id"])].append(_row_to_variant(row))

        result = []
        for row in product_rows:
            product = _row_to_product(row)
            result.append(ProductWithVariant(
                **product.model_dump(),
                variant=select_variant(variants.get(product.id, [])),
            ))
        logger.debug("Catalog loaded: %d products (org=%s)", len(result), organization_id)
        return result


# ── Search Query Logger ──────────────────────────────────────────────────────

class AsyncPGSearchQueryLogger(SearchQueryLogger):
    def __init__(self, db: DatabasePool):
        self.db = db

    async def log_search(
        self,
        search_phrase: str,
        user_type: CallerRole,
        product_ids: list[str],
        organization_id: str,
    ) -> None:
        async with self.db.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO search_queries
                    (search_phrase, user_type, returned_product_ids, organization_id, timestamp)
                VALUES ($1, $2, $3::text[], $4, $5)
                """,
                search_phrase,
                CallerRole(user_type).value,
                list(product_ids),
                organization_id,
                datetime.now(timezone.utc),
            )


# ── Row Mappers ──────────────────────────────────────────────────────────────

def _row_to_product(row: Any) -> Product:
    data = dict(row)
    data["id"] = str(data["id"])
    return Product.model_validate(data)


def _row_to_variant(row: Any) -> Variant:
    data = dict(row)
    data["id"] = str(data["id"])
    data["product_id"] = str(data["product_id"])
    for col in ("price", "original_price", "thc_percentage",
                "cbd_percentage", "total_cannabinoids"):
        if data.get(col) is not None:
            data[col] = float(data[col])  # numeric → Decimal
    if isinstance(data.get("terpene_profile"), str):
        data["terpene_profile"] = json.loads(data["terpene_profile"])
    if data.get("price") is None:
        data["price"] = 0.0
    if data.get("thc_percentage") is None:
        data["thc_percentage"] = 0.0
    return Variant.model_validate(data)
