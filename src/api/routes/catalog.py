"""Routes deriving the product listing view from query parameters."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from src.models.catalog import (
    CatalogViewResponse,
    FilterUpdateRequest,
)
from src.services.catalog.engine import CatalogEngine
from src.services.catalog.filters import (
    QUERY_KEYS,
    active_filter_labels,
    category_counts,
    page_numbers,
    primary_image,
    serialize_filter_state,
)
from src.services.clients.api_gateway import GatewayDependency
from src.services.navigation import RecordingNavigator

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/catalog", tags=["catalog"])


async def _load_engine(
    gateway: GatewayDependency,
    query: dict[str, str],
) -> tuple[CatalogEngine, RecordingNavigator]:
    navigator = RecordingNavigator()
    engine = CatalogEngine(navigator)
    engine.on_query_changed(query)
    await engine.load(gateway)
    return engine, navigator


def _render(engine: CatalogEngine, navigator: RecordingNavigator) -> CatalogViewResponse:
    view = engine.view
    return CatalogViewResponse.from_view(
        view,
        query=serialize_filter_state(engine.state),
        replace_query=navigator.last_query is not None,
        active_filters=active_filter_labels(engine.state, engine.categories),
        page_numbers=page_numbers(view.page, view.total_pages),
        category_counts=category_counts(engine.products),
        cover_images={p.id: primary_image(p) for p in view.items},
        load_error=engine.load_error,
    )


@router.get(
    "/products",
    response_model=CatalogViewResponse,
    summary="List the catalog page described by the query parameters",
)
async def list_products(
    request: Request,
    gateway: GatewayDependency,
) -> CatalogViewResponse:
    query = {
        key: value
        for key, value in request.query_params.items()
        if key in QUERY_KEYS
    }
    engine, navigator = await _load_engine(gateway, query)
    return _render(engine, navigator)


@router.post(
    "/products/filters",
    response_model=CatalogViewResponse,
    summary="Apply filter changes and return the new query and view",
)
async def update_filters(
    payload: FilterUpdateRequest,
    gateway: GatewayDependency,
) -> CatalogViewResponse:
    engine, navigator = await _load_engine(gateway, payload.query)
    changes = payload.changes.as_updates()
    logger.debug("Applying catalog filter changes: %s", changes)
    if set(changes) == {"page"}:
        engine.change_page(changes["page"])
    else:
        engine.update_filter_and_navigate(**changes)
    return _render(engine, navigator)


@router.post(
    "/products/filters/clear",
    response_model=CatalogViewResponse,
    summary="Reset every filter",
)
async def clear_filters(gateway: GatewayDependency) -> CatalogViewResponse:
    engine, navigator = await _load_engine(gateway, {})
    engine.clear_filters()
    return _render(engine, navigator)
