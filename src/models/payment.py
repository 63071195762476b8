"""Models describing the payment confirmation workflow."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus(str, Enum):
    """Payment status reported by the API gateway for an order."""

    PENDING = "PENDING"
    INITIATED = "INITIATED"
    PAID = "PAID"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    UNKNOWN = "UNKNOWN"

    @property
    def in_flight(self) -> bool:
        return self in (PaymentStatus.PENDING, PaymentStatus.INITIATED)

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]

    @property
    def tone(self) -> str:
        """Presentation tone: success, danger, warning or secondary."""
        if self is PaymentStatus.PAID:
            return "success"
        if self in (PaymentStatus.FAILED, PaymentStatus.CANCELLED):
            return "danger"
        if self.in_flight:
            return "warning"
        return "secondary"


_STATUS_LABELS = {
    PaymentStatus.PAID: "Payment Successful",
    PaymentStatus.FAILED: "Payment Failed",
    PaymentStatus.CANCELLED: "Payment Cancelled",
    PaymentStatus.PENDING: "Payment Pending",
    PaymentStatus.INITIATED: "Processing Payment",
    PaymentStatus.UNKNOWN: "Unknown Status",
}


class PollOutcome(str, Enum):
    """What the payment return screen should show."""

    CHECKING = "checking"
    CONFIRMED = "confirmed"
    PAYMENT_FAILED = "payment_failed"
    VERIFICATION_DELAYED = "verification_delayed"
    ORDER_NOT_FOUND = "order_not_found"
    NO_PENDING_ORDER = "no_pending_order"


RETRY_PATH = "/cart"
ORDER_HISTORY_PATH = "/profile#orders"

_AFFORDANCES = {
    PollOutcome.PAYMENT_FAILED: RETRY_PATH,
    PollOutcome.VERIFICATION_DELAYED: ORDER_HISTORY_PATH,
    PollOutcome.ORDER_NOT_FOUND: ORDER_HISTORY_PATH,
    PollOutcome.NO_PENDING_ORDER: RETRY_PATH,
}


class PendingOrderMarker(BaseModel):
    """Order written at checkout time and awaited after the gateway redirect."""

    order_id: int = Field(..., alias="pendingOrderId")
    client_reference: str | None = Field(None, alias="clientReference")

    model_config = ConfigDict(populate_by_name=True)


class PaymentOrderStatus(BaseModel):
    id: int
    payment_status: PaymentStatus = PaymentStatus.UNKNOWN


class PaymentStatusCheck(BaseModel):
    """Body of the gateway's payment-status endpoint."""

    order: PaymentOrderStatus
    message: str | None = None


class PaymentPollState(BaseModel):
    """Immutable snapshot of a payment poller."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    order_id: int | None = None
    client_reference: str | None = None
    status: PaymentStatus = PaymentStatus.PENDING
    attempts: int = 0
    max_attempts: int
    interval_seconds: float
    outcome: PollOutcome = PollOutcome.CHECKING
    checking: bool = True
    message: str | None = None
    redirect_to: str | None = None

    @property
    def terminal(self) -> bool:
        return self.outcome is not PollOutcome.CHECKING

    @property
    def action_path(self) -> str | None:
        """Where the retry / order history button leads, if shown."""
        return _AFFORDANCES.get(self.outcome)


class PaymentPollResponse(BaseModel):
    """Response body for the payment return endpoints."""

    session_id: str
    order_id: int | None
    status: PaymentStatus
    status_label: str
    status_tone: str
    attempts: int
    max_attempts: int
    outcome: PollOutcome
    checking: bool
    message: str | None = None
    action_path: str | None = None
    redirect_to: str | None = None

    @classmethod
    def from_state(cls, state: PaymentPollState) -> PaymentPollResponse:
        return cls(
            session_id=state.session_id,
            order_id=state.order_id,
            status=state.status,
            status_label=state.status.label,
            status_tone=state.status.tone,
            attempts=state.attempts,
            max_attempts=state.max_attempts,
            outcome=state.outcome,
            checking=state.checking,
            message=state.message,
            action_path=state.action_path,
            redirect_to=state.redirect_to,
        )
