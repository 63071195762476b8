"""Routes for the checkout marker and the payment return screen."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Path, Response, status

from src.models.payment import PaymentPollResponse, PendingOrderMarker
from src.services.payment.poller import PaymentPollerRegistry, get_poller_registry
from src.services.storage.pending_orders import (
    PendingOrderStore,
    get_pending_order_store,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["payments"])

RegistryDependency = Annotated[PaymentPollerRegistry, Depends(get_poller_registry)]
StoreDependency = Annotated[PendingOrderStore, Depends(get_pending_order_store)]
SessionId = Annotated[
    str,
    Path(min_length=1, description="Browser session owning the pending order"),
]


@router.put(
    "/pending/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Remember the order awaiting payment for a session",
)
async def save_pending_order(
    session_id: SessionId,
    payload: PendingOrderMarker,
    store: StoreDependency,
) -> Response:
    await store.save(session_id, payload)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/return/{session_id}",
    response_model=PaymentPollResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Start checking the payment after the gateway redirect",
)
async def start_payment_check(
    session_id: SessionId,
    registry: RegistryDependency,
) -> PaymentPollResponse:
    poller = registry.start(session_id)
    logger.info("Payment return screen opened for session %s", session_id)
    return PaymentPollResponse.from_state(poller.state)


@router.get(
    "/return/{session_id}",
    response_model=PaymentPollResponse,
    summary="Poll the payment check for a session",
)
async def fetch_payment_check(
    session_id: SessionId,
    registry: RegistryDependency,
) -> PaymentPollResponse:
    poller = registry.get(session_id)
    if poller is None:
        raise HTTPException(status_code=404, detail="No payment check for session")
    return PaymentPollResponse.from_state(poller.state)


@router.delete(
    "/return/{session_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Stop checking the payment (screen closed)",
)
async def stop_payment_check(
    session_id: SessionId,
    registry: RegistryDependency,
) -> Response:
    if not registry.stop(session_id):
        raise HTTPException(status_code=404, detail="No payment check for session")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
