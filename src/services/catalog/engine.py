"""Stateful catalog view kept in sync with the address bar."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Mapping
from typing import Any

from src.models.catalog import FilteredView, FilterState
from src.models.product import Category, Product
from src.services.catalog.filters import (
    apply_filters,
    serialize_filter_state,
    set_filter_from_query,
)
from src.services.clients.api_gateway import ApiGatewayClient, GatewayError
from src.services.navigation import Navigator

logger = logging.getLogger(__name__)


class CatalogEngine:
    """Derives the visible product page from the URL query.

    The URL query is the source of truth. ``state`` is a cache of the last
    parsed query; every change goes through ``Navigator.replace_query`` and
    comes back in through :meth:`on_query_changed`.
    """

    def __init__(self, navigator: Navigator, *, page_size: int | None = None) -> None:
        self._navigator = navigator
        self._page_size = page_size
        self._products: tuple[Product, ...] = ()
        self._categories: tuple[Category, ...] = ()
        self.state: FilterState = set_filter_from_query({}, page_size=page_size)
        self.view: FilteredView = apply_filters((), self.state)
        self.load_error: str | None = None
        self._loaded = False

    @property
    def products(self) -> tuple[Product, ...]:
        return self._products

    @property
    def categories(self) -> tuple[Category, ...]:
        return self._categories

    async def load(self, gateway: ApiGatewayClient) -> FilteredView:
        """Fetch products and categories, then recompute the view."""

        try:
            products, categories = await asyncio.gather(
                gateway.list_products(),
                gateway.list_categories(),
            )
        except GatewayError as exc:
            logger.error("Failed to load catalog: %s", exc)
            self.load_error = "Failed to load products"
            return self.set_catalog((), ())

        self.load_error = None
        logger.info(
            "Loaded %d products and %d categories", len(products), len(categories)
        )
        return self.set_catalog(products, categories)

    def set_catalog(
        self,
        products: Iterable[Product],
        categories: Iterable[Category] = (),
    ) -> FilteredView:
        self._products = tuple(products)
        self._categories = tuple(categories)
        self._loaded = True
        return self._recompute()

    def on_query_changed(self, query: Mapping[str, str]) -> FilteredView:
        """Handle a URL change: parse the query and recompute the view."""

        self.state = set_filter_from_query(query, page_size=self._page_size)
        return self._recompute()

    def update_filter_and_navigate(self, **changes: Any) -> FilteredView:
        """Merge ``changes`` into the state and replace the URL with the result.

        Any change besides ``page`` sends the user back to page 1.
        """

        unknown = set(changes) - set(FilterState.model_fields) - {"page_size"}
        if unknown:
            raise TypeError(f"Unknown filter fields: {', '.join(sorted(unknown))}")

        current = self.state.model_dump()
        merged = {**current, **changes}
        if any(merged[key] != current[key] for key in changes if key != "page"):
            merged["page"] = 1

        state = FilterState.model_validate(merged)
        return self._replace_and_reload(serialize_filter_state(state))

    def change_page(self, page: int) -> FilteredView:
        if page < 1 or page > self.view.total_pages:
            logger.debug("Ignoring out of range page %s", page)
            return self.view
        return self.update_filter_and_navigate(page=page)

    def clear_filters(self) -> FilteredView:
        logger.debug("Clearing catalog filters")
        return self._replace_and_reload({})

    def _replace_and_reload(self, query: dict[str, str]) -> FilteredView:
        self._navigator.replace_query(query)
        return self.on_query_changed(query)

    def _recompute(self) -> FilteredView:
        view = apply_filters(self._products, self.state)
        # Before the first load the URL page is kept as requested
        if self._loaded and view.page != self.state.page:
            logger.info(
                "Page %s out of range (%s pages), resetting to page %s",
                self.state.page,
                view.total_pages,
                view.page,
            )
            self.state = self.state.model_copy(update={"page": view.page})
            self._navigator.replace_query(serialize_filter_state(self.state))
        self.view = view
        return view
