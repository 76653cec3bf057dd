"""
Catalog and search-log repositories.

Abstract DB access used by the API layer and the recommendation engine.
In production these are backed by asyncpg (asyncpg_repository.py); the
in-memory implementations serve development and tests.
"""
from __future__ import annotations
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from models import (
    CallerRole, Product, ProductWithVariant, SearchQueryRecord, Variant,
    select_variant,
)

logger = logging.getLogger(__name__)


class CatalogRepository:
    """Supplies the ProductWithVariant view the engine ranks."""

    async def list_products(self, organization_id: Optional[str] = None) -> list[ProductWithVariant]:
        raise NotImplementedError


class SearchQueryLogger:
    """Fire-and-forget sink for kiosk and staff searches."""

    async def log_search(
        self,
        search_phrase: str,
        user_type: CallerRole,
        product_ids: list[str],
        organization_id: str,
    ) -> None:
        raise NotImplementedError


# ============================================================
# In-Memory Implementations
# ============================================================

class InMemoryCatalog(CatalogRepository):
    """In-memory catalog for testing without a database."""

    def __init__(self, products: Optional[list[ProductWithVariant]] = None):
        self.products: list[ProductWithVariant] = list(products or [])
        self.organizations: dict[str, set[str]] = {}

    def add(self, product: ProductWithVariant, organization_id: Optional[str] = None) -> None:
        self.products.append(product)
        if organization_id:
            self.organizations.setdefault(organization_id, set()).add(product.id)

    async def list_products(self, organization_id: Optional[str] = None) -> list[ProductWithVariant]:
        if organization_id:
            ids = self.organizations.get(organization_id)
            if ids is None:
                # Unknown store: shared products only
                assigned = set().union(*self.organizations.values())
                return [p for p in self.products if p.id not in assigned]
            return [p for p in self.products if p.id in ids]
        return list(self.products)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "InMemoryCatalog":
        """
        Load a catalog export: a JSON list of products, each carrying either a
        single "variant" object or a "variants" list.
        """
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        catalog = cls()
        for item in raw:
            catalog.add(product_from_record(item), item.get("organization_id"))
        logger.info("Loaded %d catalog products from %s", len(catalog.products), path)
        return catalog


class InMemorySearchLog(SearchQueryLogger):
    def __init__(self):
        self.records: list[SearchQueryRecord] = []

    async def log_search(
        self,
        search_phrase: str,
        user_type: CallerRole,
        product_ids: list[str],
        organization_id: str,
    ) -> None:
        self.records.append(SearchQueryRecord(
            search_phrase=search_phrase,
            user_type=user_type,
            returned_product_ids=list(product_ids),
            organization_id=organization_id,
            timestamp=datetime.now(timezone.utc),
        ))


# ============================================================
# Helpers
# ============================================================

def product_from_record(item: dict) -> ProductWithVariant:
    """Build the denormalized view from a product row plus its variant(s)."""
    product = Product.model_validate(item)
    if item.get("variant") is not None:
        variant: Optional[Variant] = Variant.model_validate(
            {"product_id": product.id, **item["variant"]})
    else:
        variants = [Variant.model_validate({"product_id": product.id, **v})
                    for v in item.get("variants") or []]
        variant = select_variant(variants)
    return ProductWithVariant(**product.model_dump(), variant=variant)
