"""Pytest configuration and fixtures for the storefront view service."""

import asyncio
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from fakeredis import aioredis as fakeredis
from httpx import ASGITransport, AsyncClient

from src.models.payment import PaymentStatus, PaymentStatusCheck
from src.models.product import Category, Product
from src.services.clients.api_gateway import (
    ApiGatewayClient,
    get_gateway_client,
)
from src.services.navigation import RecordingNavigator
from src.services.payment.poller import (
    PaymentPoller,
    PaymentPollerRegistry,
    get_poller_registry,
)
from src.services.storage.pending_orders import (
    RedisPendingOrderStore,
    get_pending_order_store,
)

BASE_TIME = datetime(2025, 1, 1, tzinfo=UTC)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "asyncio: marks tests as async tests")


def make_product(product_id: int, **overrides) -> Product:
    data = {
        "id": product_id,
        "name": f"Product {product_id}",
        "description": "",
        "price": Decimal("10.00"),
        "stock_quantity": 5,
        "category": 1,
        "category_name": "Electronics",
        "images": [],
        "created_at": BASE_TIME + timedelta(days=product_id),
    }
    data.update(overrides)
    return Product.model_validate(data)


@pytest.fixture()
def product_factory():
    return make_product


@pytest.fixture()
def categories() -> list[Category]:
    return [
        Category(id=1, name="Electronics"),
        Category(id=2, name="Kitchen"),
    ]


@pytest.fixture()
def products() -> list[Product]:
    return [
        make_product(
            1,
            name="Aurora Floor Lamp",
            description="Brushed brass lamp",
            price=Decimal("199.99"),
            category=2,
            category_name="Kitchen",
        ),
        make_product(2, name="bluetooth speaker", price=Decimal("49.50")),
        make_product(
            3,
            name="Coffee Grinder",
            price=Decimal("35.00"),
            stock_quantity=0,
            category=2,
            category_name="Kitchen",
        ),
        make_product(4, name="USB Cable", price=Decimal("5.00")),
        make_product(
            5,
            name="Desk Monitor",
            description="27 inch LAMP-free display",
            price=Decimal("249.00"),
        ),
    ]


class StubGateway(ApiGatewayClient):
    """In-memory gateway recording every payment status request."""

    def __init__(self, products=None, categories=None, statuses=None):
        self.products = list(products or [])
        self.categories = list(categories or [])
        self.statuses = list(statuses or [])
        self.status_calls: list[int] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_products(self, params=None):
        await asyncio.sleep(0)
        return list(self.products)

    async def list_categories(self):
        await asyncio.sleep(0)
        return list(self.categories)

    async def get_payment_status(self, order_id):
        self.status_calls.append(order_id)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(0)
            outcome = self.statuses.pop(0) if self.statuses else PaymentStatus.PENDING
            if isinstance(outcome, Exception):
                raise outcome
            return PaymentStatusCheck.model_validate(
                {"order": {"id": order_id, "payment_status": outcome}}
            )
        finally:
            self.in_flight -= 1


@pytest.fixture()
def gateway(products, categories) -> StubGateway:
    return StubGateway(products=products, categories=categories)


@pytest_asyncio.fixture()
async def redis_client():
    """Provide a fake Redis client for each test."""
    client = fakeredis.FakeRedis(decode_responses=True)
    try:
        yield client
    finally:
        await client.flushdb()
        await client.aclose()


@pytest.fixture()
def pending_store(redis_client) -> RedisPendingOrderStore:
    return RedisPendingOrderStore(redis_client, prefix="test:pending-order:")


async def fast_sleep(_seconds: float) -> None:
    """Mock clock: yield to the loop without waiting."""
    await asyncio.sleep(0)


@pytest_asyncio.fixture()
async def poller_registry(gateway, pending_store):
    def factory(session_id: str) -> PaymentPoller:
        return PaymentPoller(
            session_id=session_id,
            gateway=gateway,
            store=pending_store,
            navigator=RecordingNavigator(),
            sleep=fast_sleep,
        )

    registry = PaymentPollerRegistry(factory)
    yield registry
    registry.stop_all()


@pytest_asyncio.fixture()
async def client(gateway, pending_store, poller_registry):
    """Return an HTTPX async client pointing at the FastAPI app."""
    from src.main import app

    app.dependency_overrides[get_gateway_client] = lambda: gateway
    app.dependency_overrides[get_pending_order_store] = lambda: pending_store
    app.dependency_overrides[get_poller_registry] = lambda: poller_registry
    try:
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://testserver",
        ) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.pop(get_gateway_client, None)
        app.dependency_overrides.pop(get_pending_order_store, None)
        app.dependency_overrides.pop(get_poller_registry, None)
