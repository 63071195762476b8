"""Catalog filter state, derived views and API schemas."""

from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from src.config import settings
from src.models.product import Product


class SortKey(str, Enum):
    """Sort orders understood by the catalog listing."""

    NONE = ""
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    NAME_ASC = "name_asc"
    NAME_DESC = "name_desc"
    NEWEST = "newest"

    @property
    def label(self) -> str:
        return _SORT_LABELS.get(self, self.value)


_SORT_LABELS = {
    SortKey.PRICE_ASC: "Price: Low to High",
    SortKey.PRICE_DESC: "Price: High to Low",
    SortKey.NAME_ASC: "Name: A to Z",
    SortKey.NAME_DESC: "Name: Z to A",
    SortKey.NEWEST: "Newest First",
}


class FilterState(BaseModel):
    """Declarative filter state mirrored in the address bar query string."""

    model_config = ConfigDict(frozen=True)

    search: str = ""
    category: str | None = None
    min_price: Decimal | None = Field(None, ge=0, allow_inf_nan=False)
    max_price: Decimal | None = Field(None, ge=0, allow_inf_nan=False)
    in_stock: bool = False
    sort: SortKey = SortKey.NONE
    page: int = Field(1, ge=1)
    page_size: int = Field(default_factory=lambda: settings.CATALOG_PAGE_SIZE, ge=1)

    @field_validator("category", mode="before")
    @classmethod
    def _blank_category_as_none(cls, value: Any) -> Any:
        return value or None


class FilteredView(BaseModel):
    """Page of products derived from a FilterState."""

    model_config = ConfigDict(frozen=True)

    items: tuple[Product, ...] = ()
    total_count: int = 0
    total_pages: int = 0
    page: int = 1
    page_size: int


class FilterChanges(BaseModel):
    """Partial FilterState sent by the UI when a control changes.

    Only fields present in the request are applied; an explicit ``null``
    removes that filter.
    """

    search: str | None = None
    category: str | None = None
    min_price: Decimal | None = Field(None, ge=0, allow_inf_nan=False)
    max_price: Decimal | None = Field(None, ge=0, allow_inf_nan=False)
    in_stock: bool | None = None
    sort: SortKey | None = None
    page: int | None = Field(None, ge=1)

    @field_validator("category", mode="before")
    @classmethod
    def _blank_category_as_none(cls, value: Any) -> Any:
        return value or None

    def as_updates(self) -> dict[str, Any]:
        updates = self.model_dump(exclude_unset=True)
        if "search" in updates and updates["search"] is None:
            updates["search"] = ""
        if "in_stock" in updates and updates["in_stock"] is None:
            updates["in_stock"] = False
        if "sort" in updates and updates["sort"] is None:
            updates["sort"] = SortKey.NONE
        if updates.get("page") is None:
            updates.pop("page", None)
        return updates


class FilterUpdateRequest(BaseModel):
    """Current query string plus the controls the user just changed."""

    query: dict[str, str] = Field(default_factory=dict)
    changes: FilterChanges


class CatalogViewResponse(BaseModel):
    """Response body for catalog listing requests."""

    items: list[Product] = Field(default_factory=list)
    total_count: int
    total_pages: int
    page: int
    page_size: int
    query: dict[str, str] = Field(
        default_factory=dict,
        description="Canonical query parameters for the current filter state",
    )
    replace_query: bool = Field(
        False,
        description="True when the client must replace its URL with `query`",
    )
    active_filters: list[str] = Field(default_factory=list)
    page_numbers: list[int] = Field(default_factory=list)
    cover_images: dict[int, str] = Field(default_factory=dict)
    category_counts: dict[int, int] = Field(default_factory=dict)
    load_error: str | None = None

    @classmethod
    def from_view(cls, view: FilteredView, **extra: Any) -> CatalogViewResponse:
        return cls(
            items=list(view.items),
            total_count=view.total_count,
            total_pages=view.total_pages,
            page=view.page,
            page_size=view.page_size,
            **extra,
        )
