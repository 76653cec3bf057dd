"""asyncpg repositories against a scripted fake connection (no database)."""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from asyncpg_repository import (
    AsyncPGCatalogRepository, AsyncPGSearchQueryLogger, DatabasePool,
)
from models import CallerRole


class FakeConnection:
    def __init__(self, results):
        self.results = list(results)
        self.fetches = []
        self.executes = []

    async def fetch(self, query, *args):
        self.fetches.append((query, args))
        return self.results.pop(0)

    async def execute(self, query, *args):
        self.executes.append((query, args))


class FakePool:
    def __init__(self, conn):
        self.conn = conn

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


def _product_row(pid, **kw):
    row = {
        "id": pid, "name": f"Product {pid}", "brand": "Stiiizy", "category": "Vaporizer",
        "subcategory": None, "description": "", "strain_type": "hybrid", "genetics": None,
        "image_url": "", "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
    }
    row.update(kw)
    return row


def _variant_row(vid, pid, price, inventory, **kw):
    row = {
        "id": vid, "product_id": pid, "price": Decimal(str(price)), "original_price": None,
        "thc_percentage": Decimal("84.5"), "cbd_percentage": None, "total_cannabinoids": None,
        "terpene_profile": {"limonene": 0.6}, "inventory_level": inventory,
        "is_available": True, "size": "1g", "weight": None,
        "created_at": None, "updated_at": None,
    }
    row.update(kw)
    return row


@pytest.mark.asyncio
async def test_list_products_pairs_representative_variant():
    conn = FakeConnection([
        [_product_row("p1"), _product_row("p2"), _product_row("p3")],
        [
            _variant_row("v1", "p1", 45, 0),
            _variant_row("v2", "p1", 40, 8),
            _variant_row("v3", "p2", 30, 2, terpene_profile='{"myrcene": 0.7}'),
        ],
    ])
    repo = AsyncPGCatalogRepository(FakePool(conn))

    products = await repo.list_products("org-1")

    assert [p.id for p in products] == ["p1", "p2", "p3"]
    assert products[0].category == "vaporizer"
    assert products[0].variant.id == "v2"
    assert products[0].variant.price == 40.0
    assert products[0].variant.thc_percentage == 84.5
    assert products[1].variant.terpene_profile == {"myrcene": 0.7}
    assert products[2].variant is None

    product_query, product_args = conn.fetches[0]
    assert "organization_id = $1" in product_query
    assert product_args == ("org-1",)
    assert conn.fetches[1][1] == (["p1", "p2", "p3"],)


@pytest.mark.asyncio
async def test_list_products_without_organization():
    conn = FakeConnection([[]])
    products = await AsyncPGCatalogRepository(FakePool(conn)).list_products()

    assert products == []
    assert len(conn.fetches) == 1
    query, args = conn.fetches[0]
    assert "WHERE" not in query
    assert args == ()


@pytest.mark.asyncio
async def test_log_search_inserts_row():
    conn = FakeConnection([])
    logger = AsyncPGSearchQueryLogger(FakePool(conn))

    await logger.log_search("sleepy", CallerRole.STAFF, ["p1", "p2"], "org-1")

    query, args = conn.executes[0]
    assert "INSERT INTO search_queries" in query
    assert args[:4] == ("sleepy", "staff", ["p1", "p2"], "org-1")
    assert args[4].tzinfo is not None


def test_pool_requires_initialize():
    with pytest.raises(RuntimeError, match="not initialized"):
        DatabasePool("postgresql://localhost/x").pool
