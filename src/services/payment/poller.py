"""Polls the gateway until a redirected payment reaches a final status."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from src.config import settings
from src.models.payment import (
    RETRY_PATH,
    PaymentPollState,
    PaymentStatus,
    PollOutcome,
)
from src.services.clients.api_gateway import (
    ApiGatewayClient,
    GatewayError,
    GatewayNotFoundError,
    get_gateway_client,
)
from src.services.navigation import Navigator, RecordingNavigator
from src.services.storage.pending_orders import (
    PendingOrderStore,
    get_pending_order_store,
)

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[Any]]

MSG_NO_PENDING_ORDER = "No pending order found. Please complete checkout first."
MSG_CONFIRMED = "Payment completed successfully!"
MSG_FAILED = "Payment was not completed. Please try again."
MSG_DELAYED = (
    "Payment verification is taking longer than expected. "
    "Please check your order history."
)
MSG_UNVERIFIED = (
    "Unable to verify payment status. "
    "Please check your order history or contact support."
)
MSG_NOT_FOUND = "We could not find this order. Please check your order history."


class PaymentPoller:
    """Reconciles one order's payment status with the gateway.

    Queries immediately, then once per interval while the status is
    PENDING/INITIATED, up to ``max_attempts`` queries in total. Queries are
    strictly sequential. :meth:`stop` cancels the loop; nothing is requested
    or navigated afterwards.
    """

    def __init__(
        self,
        *,
        session_id: str,
        gateway: ApiGatewayClient,
        store: PendingOrderStore,
        navigator: Navigator,
        interval_seconds: float | None = None,
        max_attempts: int | None = None,
        success_redirect_delay: float | None = None,
        missing_order_redirect_delay: float | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.session_id = session_id
        self._gateway = gateway
        self._store = store
        self._navigator = navigator
        self._sleep = sleep
        self._interval = (
            settings.PAYMENT_POLL_INTERVAL_SECONDS
            if interval_seconds is None
            else interval_seconds
        )
        self._success_delay = (
            settings.PAYMENT_SUCCESS_REDIRECT_DELAY_SECONDS
            if success_redirect_delay is None
            else success_redirect_delay
        )
        self._missing_order_delay = (
            settings.PAYMENT_MISSING_ORDER_REDIRECT_DELAY_SECONDS
            if missing_order_redirect_delay is None
            else missing_order_redirect_delay
        )
        self.state = PaymentPollState(
            session_id=session_id,
            max_attempts=max_attempts or settings.PAYMENT_POLL_MAX_ATTEMPTS,
            interval_seconds=self._interval,
        )
        self._task: asyncio.Task[None] | None = None
        self._stopped = False

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Begin polling on the running event loop. Repeated calls are ignored."""

        if self._task is not None or self._stopped:
            logger.debug(
                "Ignoring start for payment poller %s (already started)",
                self.session_id,
            )
            return
        self._task = asyncio.create_task(
            self._run(), name=f"payment-poller:{self.session_id}"
        )

    def stop(self) -> None:
        """Tear the poller down; pending timers and requests are cancelled."""

        self._stopped = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
            logger.info("Payment poller %s stopped", self.session_id)

    def add_done_callback(self, callback: Callable[[PaymentPoller], None]) -> None:
        """Call ``callback(self)`` once the started loop finishes."""

        if self._task is None:
            raise RuntimeError("Payment poller has not been started")
        self._task.add_done_callback(lambda _task: callback(self))

    async def wait(self) -> PaymentPollState:
        """Wait until the loop finishes (or is cancelled) and return the state."""

        if self._task is not None:
            await asyncio.wait({self._task})
        return self.state

    async def _run(self) -> None:
        try:
            marker = await self._store.get(self.session_id)
            if marker is None:
                logger.warning("No pending order for session %s", self.session_id)
                self._update(
                    outcome=PollOutcome.NO_PENDING_ORDER,
                    checking=False,
                    message=MSG_NO_PENDING_ORDER,
                )
                await self._redirect(RETRY_PATH, self._missing_order_delay)
                return

            self._update(
                order_id=marker.order_id,
                client_reference=marker.client_reference,
            )
            logger.info(
                "Checking payment for order %s",
                marker.order_id,
                extra={
                    "session_id": self.session_id,
                    "client_reference": marker.client_reference,
                },
            )

            await self._poll_once()
            while not self.state.terminal:
                await self._sleep(self._interval)
                await self._poll_once()

            await self._clear_marker()
            if self.state.outcome is PollOutcome.CONFIRMED:
                await self._redirect(
                    f"/order-confirmation/{self.state.order_id}",
                    self._success_delay,
                )
        except Exception:  # pylint: disable=broad-exception-caught
            logger.exception("Payment poller %s crashed", self.session_id)
            self._update(
                status=PaymentStatus.UNKNOWN,
                outcome=PollOutcome.VERIFICATION_DELAYED,
                checking=False,
                message=MSG_UNVERIFIED,
            )

    async def _poll_once(self) -> None:
        order_id = self.state.order_id
        attempt = self.state.attempts + 1
        exhausted = attempt >= self.state.max_attempts

        try:
            response = await self._gateway.get_payment_status(order_id)
        except GatewayNotFoundError:
            logger.warning("Order %s not found while checking payment", order_id)
            self._update(
                attempts=attempt,
                status=PaymentStatus.UNKNOWN,
                outcome=PollOutcome.ORDER_NOT_FOUND,
                checking=False,
                message=MSG_NOT_FOUND,
            )
            return
        except GatewayError as exc:
            logger.warning(
                "Payment status check %d/%d for order %s failed: %s",
                attempt,
                self.state.max_attempts,
                order_id,
                exc,
            )
            if exhausted:
                self._update(
                    attempts=attempt,
                    status=PaymentStatus.UNKNOWN,
                    outcome=PollOutcome.VERIFICATION_DELAYED,
                    checking=False,
                    message=MSG_UNVERIFIED,
                )
            else:
                self._update(attempts=attempt)
            return

        status = response.order.payment_status
        logger.debug("Order %s payment status: %s", order_id, status.value)

        if status is PaymentStatus.PAID:
            logger.info("Payment confirmed for order %s", order_id)
            self._update(
                attempts=attempt,
                status=status,
                outcome=PollOutcome.CONFIRMED,
                checking=False,
                message=MSG_CONFIRMED,
            )
        elif status in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
            logger.info("Payment %s for order %s", status.value.lower(), order_id)
            self._update(
                attempts=attempt,
                status=status,
                outcome=PollOutcome.PAYMENT_FAILED,
                checking=False,
                message=MSG_FAILED,
            )
        elif status.in_flight and not exhausted:
            self._update(attempts=attempt, status=status)
        else:
            logger.warning(
                "Giving up on order %s after %d attempts (status %s)",
                order_id,
                attempt,
                status.value,
            )
            self._update(
                attempts=attempt,
                status=PaymentStatus.UNKNOWN,
                outcome=PollOutcome.VERIFICATION_DELAYED,
                checking=False,
                message=MSG_DELAYED,
            )

    async def _clear_marker(self) -> None:
        try:
            await self._store.clear(self.session_id)
        except Exception:  # pylint: disable=broad-exception-caught
            # Outcome already recorded, the next checkout overwrites the marker
            logger.exception(
                "Failed to clear pending order marker for session %s",
                self.session_id,
            )

    async def _redirect(self, path: str, delay: float) -> None:
        await self._sleep(delay)
        if self._stopped:
            return
        self._update(redirect_to=path)
        self._navigator.navigate(path)

    def _update(self, **changes: Any) -> None:
        self.state = self.state.model_copy(update=changes)


PollerFactory = Callable[[str], PaymentPoller]


class PaymentPollerRegistry:
    """Keeps at most one running poller per browser session.

    A finished poller stays readable for ``retention_seconds`` so the return
    screen can fetch its final state, then it is evicted.
    """

    def __init__(
        self,
        factory: PollerFactory,
        *,
        retention_seconds: float | None = None,
    ) -> None:
        self._factory = factory
        self._retention = (
            settings.PAYMENT_POLL_RETENTION_SECONDS
            if retention_seconds is None
            else retention_seconds
        )
        self._pollers: dict[str, PaymentPoller] = {}
        self._evictions: dict[str, asyncio.TimerHandle] = {}

    def __len__(self) -> int:
        return len(self._pollers)

    def start(self, session_id: str) -> PaymentPoller:
        existing = self._pollers.get(session_id)
        if existing is not None and existing.active:
            logger.info("Payment poller already running for session %s", session_id)
            return existing

        self._cancel_eviction(session_id)
        poller = self._factory(session_id)
        self._pollers[session_id] = poller
        poller.start()
        poller.add_done_callback(self._schedule_eviction)
        return poller

    def get(self, session_id: str) -> PaymentPoller | None:
        return self._pollers.get(session_id)

    def stop(self, session_id: str) -> bool:
        self._cancel_eviction(session_id)
        poller = self._pollers.pop(session_id, None)
        if poller is None:
            return False
        poller.stop()
        return True

    def _schedule_eviction(self, poller: PaymentPoller) -> None:
        if self._pollers.get(poller.session_id) is not poller:
            return
        loop = asyncio.get_running_loop()
        self._evictions[poller.session_id] = loop.call_later(
            self._retention, self._evict, poller
        )

    def _evict(self, poller: PaymentPoller) -> None:
        self._evictions.pop(poller.session_id, None)
        if self._pollers.get(poller.session_id) is poller:
            del self._pollers[poller.session_id]
            logger.debug("Evicted finished payment poller %s", poller.session_id)

    def _cancel_eviction(self, session_id: str) -> None:
        handle = self._evictions.pop(session_id, None)
        if handle is not None:
            handle.cancel()

    def stop_all(self) -> None:
        for session_id in list(self._pollers):
            self.stop(session_id)


def _default_factory(session_id: str) -> PaymentPoller:
    return PaymentPoller(
        session_id=session_id,
        gateway=get_gateway_client(),
        store=get_pending_order_store(),
        navigator=RecordingNavigator(),
    )


_registry = PaymentPollerRegistry(_default_factory)


def get_poller_registry() -> PaymentPollerRegistry:
    """FastAPI dependency factory."""

    return _registry
