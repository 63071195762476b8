"""Tests for the URL-synchronised catalog engine."""

from decimal import Decimal
from unittest.mock import MagicMock

import httpx
import pytest

from src.models.catalog import SortKey
from src.services.catalog.engine import CatalogEngine
from src.services.clients.api_gateway import (
    GatewayTransportError,
    HttpApiGatewayClient,
)
from src.services.navigation import Navigator, RecordingNavigator


@pytest.fixture()
def navigator():
    return MagicMock(spec=Navigator)


@pytest.fixture()
def engine(navigator, products, categories):
    engine = CatalogEngine(navigator, page_size=2)
    engine.set_catalog(products, categories)
    return engine


def test_query_change_recomputes_view(engine, navigator):
    view = engine.on_query_changed({"category": "2", "sort": "price_asc"})

    assert [p.id for p in view.items] == [3, 1]
    assert engine.state.category == "2"
    navigator.replace_query.assert_not_called()


def test_filter_change_resets_page_and_replaces_url(engine, navigator):
    engine.on_query_changed({"page": "2"})

    view = engine.update_filter_and_navigate(sort=SortKey.PRICE_DESC)

    navigator.replace_query.assert_called_once_with({"sort": "price_desc"})
    assert engine.state.page == 1
    assert [p.id for p in view.items] == [5, 1]


def test_page_only_change_keeps_other_filters(engine, navigator):
    engine.on_query_changed({"in_stock": "true"})

    view = engine.update_filter_and_navigate(page=2)

    navigator.replace_query.assert_called_once_with({"in_stock": "true", "page": "2"})
    assert view.page == 2
    assert [p.id for p in view.items] == [4, 5]


def test_unchanged_filter_value_does_not_reset_page(engine, navigator):
    engine.on_query_changed({"search": "e", "page": "2"})

    engine.update_filter_and_navigate(search="e")

    navigator.replace_query.assert_called_once_with({"search": "e", "page": "2"})
    assert engine.state.page == 2


def test_update_round_trips_through_query(engine):
    engine.update_filter_and_navigate(
        search="lamp",
        min_price=Decimal("100"),
        max_price=Decimal("300"),
    )

    assert engine.state.search == "lamp"
    assert engine.state.min_price == Decimal("100")
    assert [p.id for p in engine.view.items] == [1, 5]


def test_unknown_filter_field_is_rejected(engine):
    with pytest.raises(TypeError):
        engine.update_filter_and_navigate(colour="red")


def test_out_of_range_page_is_clamped_and_url_resynchronised(engine, navigator):
    view = engine.on_query_changed({"search": "lamp", "page": "7"})

    assert view.page == 1
    assert engine.state.page == 1
    navigator.replace_query.assert_called_once_with({"search": "lamp"})


def test_page_is_kept_until_catalog_loads(navigator, products):
    engine = CatalogEngine(navigator, page_size=2)

    engine.on_query_changed({"page": "3"})
    navigator.replace_query.assert_not_called()

    view = engine.set_catalog(products)
    assert view.page == 3
    assert [p.id for p in view.items] == [5]


def test_clear_filters_returns_unfiltered_first_page(engine, navigator, products):
    engine.on_query_changed({"search": "lamp", "sort": "newest", "page": "2"})

    view = engine.clear_filters()

    navigator.replace_query.assert_called_with({})
    assert engine.state.search == ""
    assert engine.state.sort is SortKey.NONE
    assert list(view.items) == products[:2]
    assert view.total_count == len(products)


def test_change_page_ignores_out_of_range(engine, navigator):
    engine.change_page(10)
    engine.change_page(0)

    navigator.replace_query.assert_not_called()

    engine.change_page(3)
    navigator.replace_query.assert_called_once_with({"page": "3"})
    assert [p.id for p in engine.view.items] == [5]


@pytest.mark.asyncio
async def test_load_fetches_products_and_categories(gateway, products):
    navigator = RecordingNavigator()
    engine = CatalogEngine(navigator, page_size=10)

    view = await engine.load(gateway)

    assert view.total_count == len(products)
    assert [c.name for c in engine.categories] == ["Electronics", "Kitchen"]
    assert engine.load_error is None


@pytest.mark.asyncio
async def test_load_failure_leaves_empty_catalog(gateway):
    gateway.list_products = MagicMock(side_effect=GatewayTransportError("down"))
    engine = CatalogEngine(RecordingNavigator())

    view = await engine.load(gateway)

    assert view.total_count == 0
    assert engine.products == ()
    assert engine.load_error == "Failed to load products"


@pytest.mark.asyncio
async def test_load_keeps_valid_products_when_one_record_is_malformed():
    listing = [
        {"id": 1, "name": "USB Cable", "price": "5.00"},
        {"id": 2, "name": "Broken", "price": None},
    ]

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("/categories/"):
            return httpx.Response(200, json=[])
        return httpx.Response(200, json=listing)

    gateway = HttpApiGatewayClient(
        base_url="http://gateway.test/api",
        transport=httpx.MockTransport(handler),
    )
    engine = CatalogEngine(RecordingNavigator())

    view = await engine.load(gateway)
    await gateway.aclose()

    assert engine.load_error is None
    assert [p.id for p in view.items] == [1]
