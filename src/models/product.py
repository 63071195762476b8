"""Product domain models as served by the API gateway."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Category(BaseModel):
    """Represents a category coming from the catalog endpoint."""

    id: int = Field(..., description="Unique identifier of the category")
    name: str
    parent: int | None = None
    children: list[Category] = Field(default_factory=list)


class ActivePromotion(BaseModel):
    """Promotion currently attached to a product."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    badge_text: str = ""
    badge_color: str = ""


class Product(BaseModel):
    """Read-only product snapshot used by the catalog views."""

    model_config = ConfigDict(frozen=True)

    id: int = Field(..., description="Unique identifier of the product")
    name: str
    description: str = ""
    price: Decimal = Field(..., ge=0)
    stock_quantity: int = Field(0, ge=0)
    is_active: bool = True
    category: int | None = Field(None, description="Category reference")
    category_name: str = ""
    images: tuple[str, ...] = Field(
        default_factory=tuple,
        description="Ordered image URLs, first one is the cover",
    )
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    has_promotion: bool = False
    active_promotion: ActivePromotion | None = None
    promotional_price: Decimal | None = Field(None, ge=0)
    discount_percentage: float | None = None

    @field_validator("description", "category_name", mode="before")
    @classmethod
    def _none_as_empty(cls, value: Any) -> Any:
        return "" if value is None else value

    @field_validator("images", mode="before")
    @classmethod
    def _flatten_images(cls, value: Any) -> Any:
        # The gateway sends [{"id": 1, "image": "https://..."}]
        if value is None:
            return ()
        urls = (
            item.get("image") if isinstance(item, dict) else item for item in value
        )
        return tuple(url for url in urls if url)

    @property
    def in_stock(self) -> bool:
        return self.stock_quantity > 0
