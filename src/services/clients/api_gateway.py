"""API gateway client abstractions and implementations."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Annotated, Any, TypeVar

import httpx
from fastapi import Depends
from pydantic import BaseModel, ValidationError

from src.config import settings
from src.models.payment import PaymentStatusCheck
from src.models.product import Category, Product

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class GatewayError(RuntimeError):
    """Base error raised when the API gateway cannot serve a request."""


class GatewayTransportError(GatewayError):
    """Network failure, timeout or server-side error; safe to retry."""


class GatewayNotFoundError(GatewayError):
    """The requested resource does not exist; retrying will not help."""


class ApiGatewayClient(ABC):
    """Abstract interface over the storefront REST API."""

    @abstractmethod
    async def list_products(
        self, params: dict[str, str] | None = None
    ) -> list[Product]:
        """Return the product listing."""

    @abstractmethod
    async def list_categories(self) -> list[Category]:
        """Return the category listing."""

    @abstractmethod
    async def get_payment_status(self, order_id: int) -> PaymentStatusCheck:
        """Return the payment status of an order."""

    async def aclose(self) -> None:
        return None


class HttpApiGatewayClient(ApiGatewayClient):
    """Gateway implementation backed by httpx."""

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float = 10.0,
        token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("API base URL is required to initialize gateway client")

        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers=headers,
            transport=transport,
        )

    async def list_products(
        self, params: dict[str, str] | None = None
    ) -> list[Product]:
        payload = await self._get_json("/products/", params=params)
        return _validate_listing(Product, payload)

    async def list_categories(self) -> list[Category]:
        payload = await self._get_json("/categories/")
        return _validate_listing(Category, payload)

    async def get_payment_status(self, order_id: int) -> PaymentStatusCheck:
        payload = await self._get_json(f"/orders/{order_id}/payment-status/")
        try:
            return PaymentStatusCheck.model_validate(payload)
        except ValidationError as exc:
            raise GatewayTransportError(
                f"Malformed payment status for order {order_id}"
            ) from exc

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get_json(
        self, path: str, params: dict[str, str] | None = None
    ) -> Any:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status_code = exc.response.status_code
            logger.warning("Gateway GET %s returned %s", path, status_code)
            if status_code == 404:
                raise GatewayNotFoundError(f"{path} not found") from exc
            raise GatewayTransportError(
                f"Gateway GET {path} failed with status {status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Gateway GET %s failed: %s", path, exc)
            raise GatewayTransportError(f"Gateway GET {path} failed: {exc}") from exc

        try:
            return response.json()
        except ValueError as exc:
            raise GatewayTransportError(f"Gateway GET {path} returned non-JSON") from exc


def _unwrap_listing(payload: Any) -> list[Any]:
    """Accept bare lists and paginated ``{"results": [...]}`` envelopes."""

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("results"), list):
        return payload["results"]
    logger.warning("Unexpected listing payload type: %s", type(payload).__name__)
    return []


def _validate_listing(model: type[ModelT], payload: Any) -> list[ModelT]:
    """Validate listing items one by one, skipping records that do not parse."""

    items: list[ModelT] = []
    for index, item in enumerate(_unwrap_listing(payload)):
        try:
            items.append(model.model_validate(item))
        except ValidationError as exc:
            logger.warning(
                "Skipping malformed %s at index %d: %s",
                model.__name__,
                index,
                exc.errors(include_url=False),
            )
    return items


_gateway_client: ApiGatewayClient | None = None


def get_gateway_client() -> ApiGatewayClient:
    """FastAPI dependency returning the process-wide gateway client."""

    global _gateway_client
    if _gateway_client is None:
        _gateway_client = HttpApiGatewayClient(
            base_url=settings.API_BASE_URL,
            timeout=settings.API_TIMEOUT_SECONDS,
            token=settings.API_TOKEN,
        )
    return _gateway_client


async def close_gateway_client() -> None:
    global _gateway_client
    if _gateway_client is not None:
        await _gateway_client.aclose()
        _gateway_client = None


GatewayDependency = Annotated[ApiGatewayClient, Depends(get_gateway_client)]
