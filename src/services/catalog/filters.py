"""Pure helpers deriving catalog views from query parameters."""

from __future__ import annotations

import locale
import math
from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal, InvalidOperation

from src.config import settings
from src.models.catalog import FilteredView, FilterState, SortKey
from src.models.product import Category, Product

QUERY_KEYS = ("search", "category", "min_price", "max_price", "in_stock", "sort", "page")


def set_filter_from_query(
    query: Mapping[str, str],
    *,
    page_size: int | None = None,
) -> FilterState:
    """Parse URL query parameters into a FilterState.

    Never raises: malformed values fall back to "filter absent" and pages
    below 1 (or not numbers at all) become page 1.
    """

    return FilterState(
        search=query.get("search") or "",
        category=query.get("category") or None,
        min_price=_parse_price(query.get("min_price")),
        max_price=_parse_price(query.get("max_price")),
        in_stock=query.get("in_stock") == "true",
        sort=_parse_sort(query.get("sort")),
        page=_parse_page(query.get("page")),
        page_size=page_size or settings.CATALOG_PAGE_SIZE,
    )


def serialize_filter_state(state: FilterState) -> dict[str, str]:
    """Render a FilterState as query parameters, omitting defaults."""

    query: dict[str, str] = {}
    if state.search:
        query["search"] = state.search
    if state.category:
        query["category"] = state.category
    if state.min_price is not None:
        query["min_price"] = str(state.min_price)
    if state.max_price is not None:
        query["max_price"] = str(state.max_price)
    if state.in_stock:
        query["in_stock"] = "true"
    if state.sort is not SortKey.NONE:
        query["sort"] = state.sort.value
    if state.page > 1:
        query["page"] = str(state.page)
    return query


def _parse_price(raw: str | None) -> Decimal | None:
    if not raw:
        return None
    try:
        value = Decimal(raw.strip())
    except InvalidOperation:
        return None
    if not value.is_finite() or value < 0:
        return None
    return value


def _parse_sort(raw: str | None) -> SortKey:
    try:
        return SortKey(raw or "")
    except ValueError:
        return SortKey.NONE


def _parse_page(raw: str | None) -> int:
    try:
        page = int(raw) if raw else 1
    except ValueError:
        return 1
    return max(page, 1)


def apply_filters(products: Iterable[Product], state: FilterState) -> FilteredView:
    """Filter, sort and paginate ``products`` according to ``state``.

    Predicates run in a fixed order: text search, category, minimum price,
    maximum price, stock. A page beyond the last one is clamped to page 1.
    The input is never mutated.
    """

    filtered = list(products)

    needle = state.search.strip().casefold()
    if needle:
        filtered = [p for p in filtered if _matches_search(p, needle)]

    if state.category:
        filtered = [
            p
            for p in filtered
            if p.category is not None and str(p.category) == state.category
        ]

    if state.min_price is not None:
        filtered = [p for p in filtered if p.price >= state.min_price]

    if state.max_price is not None:
        filtered = [p for p in filtered if p.price <= state.max_price]

    if state.in_stock:
        filtered = [p for p in filtered if p.stock_quantity > 0]

    filtered = sort_products(filtered, state.sort)

    total_count = len(filtered)
    total_pages = math.ceil(total_count / state.page_size)
    page = state.page if state.page <= total_pages else 1
    start = (page - 1) * state.page_size

    return FilteredView(
        items=tuple(filtered[start : start + state.page_size]),
        total_count=total_count,
        total_pages=total_pages,
        page=page,
        page_size=state.page_size,
    )


def _matches_search(product: Product, needle: str) -> bool:
    return (
        needle in product.name.casefold()
        or needle in product.description.casefold()
        or needle in product.category_name.casefold()
    )


def _name_key(product: Product) -> str:
    return locale.strxfrm(product.name.casefold())


def sort_products(products: Sequence[Product], sort: SortKey) -> list[Product]:
    """Return a stably sorted copy of ``products``."""

    if sort is SortKey.PRICE_ASC:
        return sorted(products, key=lambda p: p.price)
    if sort is SortKey.PRICE_DESC:
        return sorted(products, key=lambda p: p.price, reverse=True)
    if sort is SortKey.NAME_ASC:
        return sorted(products, key=_name_key)
    if sort is SortKey.NAME_DESC:
        return sorted(products, key=_name_key, reverse=True)
    if sort is SortKey.NEWEST:
        return sorted(products, key=lambda p: p.created_at.timestamp(), reverse=True)
    return list(products)


def active_filter_labels(
    state: FilterState,
    categories: Iterable[Category] = (),
) -> list[str]:
    """Human-readable chips for the filters currently applied."""

    labels: list[str] = []
    if state.search.strip():
        labels.append(f'Search: "{state.search}"')
    if state.category:
        name = next(
            (c.name for c in categories if str(c.id) == state.category),
            None,
        )
        if name is not None:
            labels.append(f"Category: {name}")
    if state.min_price is not None:
        labels.append(f"Min Price: ${state.min_price}")
    if state.max_price is not None:
        labels.append(f"Max Price: ${state.max_price}")
    if state.in_stock:
        labels.append("In Stock Only")
    if state.sort is not SortKey.NONE:
        labels.append(f"Sorted: {state.sort.label}")
    return labels


def page_numbers(page: int, total_pages: int, window: int | None = None) -> list[int]:
    """Sliding window of page links centred on ``page`` where possible."""

    window = window or settings.CATALOG_PAGE_WINDOW
    start = max(1, page - window // 2)
    end = start + window - 1
    if end > total_pages:
        end = total_pages
        start = max(1, end - window + 1)
    return list(range(start, end + 1))


def category_counts(products: Iterable[Product]) -> dict[int, int]:
    counts = Counter(p.category for p in products if p.category is not None)
    return dict(counts)


def primary_image(product: Product) -> str:
    """Cover image, falling back to the placeholder for the product category."""

    if product.images:
        return product.images[0]
    return settings.CATALOG_CATEGORY_PLACEHOLDER_IMAGES.get(
        product.category, settings.CATALOG_PLACEHOLDER_IMAGE
    )
