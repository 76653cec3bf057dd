"""
Dispensary Vibe Recommender — Core Pydantic Models
"""
from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Terpene name → intensity (conventionally 0.0–1.0, not clamped).
# Open key set; an empty dict means "no terpene data".
TerpeneProfile = dict[str, float]

# ============================================================
# Enums
# ============================================================

class StrainType(str, Enum):
    SATIVA = "sativa"
    INDICA = "indica"
    HYBRID = "hybrid"
    CBD = "cbd"
    BALANCED = "balanced"

class UserType(str, Enum):
    KIOSK = "kiosk"
    STAFF = "staff"

class CallerRole(str, Enum):
    CUSTOMER = "customer"
    STAFF = "staff"

    @classmethod
    def for_user_type(cls, user_type: UserType | str) -> "CallerRole":
        """Kiosk callers are customers; everyone else is staff."""
        return cls.CUSTOMER if user_type == UserType.KIOSK.value else cls.STAFF


def _clean_terpenes(v: Any) -> dict[str, float]:
    """Drop undefined intensities and coerce the rest to float."""
    if not v:
        return {}
    cleaned: dict[str, float] = {}
    for name, value in dict(v).items():
        if value is None:
            continue
        try:
            cleaned[str(name)] = float(value)
        except (TypeError, ValueError):
            continue
    return cleaned

# ============================================================
# Catalog Models
# ============================================================

class Product(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    brand: str = ""
    category: str = ""
    subcategory: Optional[str] = None
    description: str = ""
    strain_type: Optional[StrainType] = None
    genetics: Optional[str] = None
    image_url: str = ""
    created_at: Optional[datetime] = None

    @field_validator("strain_type", mode="before")
    @classmethod
    def normalize_strain_type(cls, v: Any) -> Optional[str]:
        if v is None or isinstance(v, StrainType):
            return v
        v = str(v).strip().lower()
        return v if v in {s.value for s in StrainType} else None

    @field_validator("category", mode="before")
    @classmethod
    def normalize_category(cls, v: Any) -> str:
        return str(v or "").strip().lower()

class Variant(BaseModel):
    """A sellable SKU. Missing inventory counts as 0, missing availability as False."""
    model_config = ConfigDict(frozen=True)

    id: str
    product_id: str
    price: float = 0.0
    original_price: Optional[float] = None
    thc_percentage: float = 0.0
    cbd_percentage: Optional[float] = None
    total_cannabinoids: Optional[float] = None
    terpene_profile: TerpeneProfile = Field(default_factory=dict)
    inventory_level: int = 0
    is_available: bool = False
    size: Optional[str] = None
    weight: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("terpene_profile", mode="before")
    @classmethod
    def clean_terpene_profile(cls, v: Any) -> dict[str, float]:
        return _clean_terpenes(v)

    @field_validator("inventory_level", mode="before")
    @classmethod
    def default_inventory(cls, v: Any) -> int:
        return 0 if v is None else v

    @field_validator("is_available", mode="before")
    @classmethod
    def default_availability(cls, v: Any) -> bool:
        return False if v is None else v

    @property
    def in_stock(self) -> bool:
        return self.is_available and self.inventory_level > 0

class ProductWithVariant(Product):
    """Denormalized view: a product paired with one representative variant."""
    variant: Optional[Variant] = None

    @property
    def is_recommendable(self) -> bool:
        return self.variant is not None and self.variant.in_stock


def select_variant(variants: list[Variant]) -> Optional[Variant]:
    """Cheapest in-stock variant, else the first one listed."""
    if not variants:
        return None
    in_stock = [v for v in variants if v.in_stock]
    if in_stock:
        return min(in_stock, key=lambda v: v.price)
    return variants[0]

class VibeMapping(BaseModel):
    terpenes: TerpeneProfile
    effects: list[str] = Field(default_factory=list)

    @field_validator("terpenes", mode="before")
    @classmethod
    def clean_terpenes(cls, v: Any) -> dict[str, float]:
        return _clean_terpenes(v)

# ============================================================
# External AI Contract
# ============================================================

class AIIdealProfile(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    strain_type: Optional[str] = Field(default=None, alias="strainType")
    preferred_category: Optional[str] = Field(default=None, alias="preferredCategory")
    dominant_terpenes: list[str] = Field(default_factory=list, alias="dominantTerpenes")
    thc_range: Optional[str] = Field(default=None, alias="thcRange")

    @field_validator("dominant_terpenes", mode="before")
    @classmethod
    def coerce_terpenes(cls, v: Any) -> list[str]:
        if not isinstance(v, list):
            return []
        return [str(t) for t in v if t]

class AIRecommendation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    product_id: Optional[str] = Field(default=None, alias="productId")
    confidence: float = 0.0
    reason: str = ""
    ideal_profile: Optional[AIIdealProfile] = Field(default=None, alias="idealProfile")

class AIRecommendationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    recommendations: list[AIRecommendation] = Field(default_factory=list)
    effects: Optional[list[str]] = None
    query_analyzed: Optional[str] = None
    personalized_message: Optional[str] = Field(default=None, alias="personalizedMessage")
    context_factors: Optional[list[str]] = Field(default=None, alias="contextFactors")
    error: Optional[str] = None

# ============================================================
# Engine Output
# ============================================================

class RecommendationResult(BaseModel):
    products: list[ProductWithVariant] = Field(default_factory=list)
    effects: list[str] = Field(default_factory=list)
    is_ai_powered: bool = False
    personalized_message: Optional[str] = None
    context_factors: Optional[list[str]] = None
    total_available: int = 0

    @property
    def product_ids(self) -> list[str]:
        return [p.id for p in self.products]

class SearchQueryRecord(BaseModel):
    search_phrase: str
    user_type: CallerRole
    returned_product_ids: list[str] = Field(default_factory=list)
    organization_id: Optional[str] = None
    timestamp: datetime

# ============================================================
# API Request / Response Models
# ============================================================

class RecommendRequest(BaseModel):
    vibe: str
    user_type: UserType = UserType.KIOSK
    page_size: Optional[int] = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)
    organization_id: Optional[str] = None

class RecommendResponse(BaseModel):
    products: list[ProductWithVariant]
    effects: list[str]
    is_ai_powered: bool
    personalized_message: Optional[str] = None
    context_factors: Optional[list[str]] = None
    fallback_message: Optional[str] = None
    fallback_context_factors: Optional[list[str]] = None
    total_available: int
    offset: int
    has_more: bool
    response_time_ms: int

class ParseVibeRequest(BaseModel):
    query: str

class ParseVibeResponse(BaseModel):
    query: str
    terpene_profile: TerpeneProfile
    effects: list[str]
    category: Optional[str] = None

class HealthResponse(BaseModel):
    status: str
    components: dict[str, dict]
    version: str
    uptime_seconds: int
    request_count: int
