from datetime import datetime
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ListResponse(BaseModel, Generic[T]):
    items: list[T]
    count: int
    limit: int
    offset: int
    total: int


# ── Price ────────────────────────────────────────────────


class PriceRead(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, populate_by_name=True, use_enum_values=True
    )
    id: str
    product_id: str
    currency: str
    unit_amount: int | None = None
    type: str
    recurring_interval: str | None = None
    recurring_interval_count: int | None = None
    trial_period_days: int | None = None
    nickname: str | None = None
    is_active: bool
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")


# ── Product ──────────────────────────────────────────────


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)
    id: str
    name: str
    description: str | None = None
    is_active: bool
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")
    updated_at: datetime


class CatalogProductRead(ProductRead):
    prices: list[PriceRead] = Field(default_factory=list)
