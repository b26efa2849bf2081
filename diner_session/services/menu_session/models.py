"""Menu session wire models."""
from enum import Enum
from typing import Generic, List, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from diner_session.services.menu_session.currency import format_price


class OrderStatus(str, Enum):
    """Kitchen lifecycle of a placed order."""

    PENDING = "pending"
    PREPARING = "preparing"
    READY = "ready"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        """Return the string value of the status."""
        return self.value

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.READY})
TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.COMPLETED, OrderStatus.CANCELLED})


class SelectedVariation(BaseModel):
    """Chosen variation of a menu item and its price delta."""

    name: str
    price: float = 0.0


class OrderLineItem(BaseModel):
    """One cart line as sent to and returned by the server."""

    model_config = ConfigDict(populate_by_name=True)

    id: int
    name: str
    quantity: int = 1
    unit_price: float
    selected_variation: Optional[SelectedVariation] = Field(default=None, alias="selectedVariation")

    @property
    def line_total(self) -> float:
        delta = self.selected_variation.price if self.selected_variation else 0.0
        return (self.unit_price + delta) * self.quantity


class OrderSummary(BaseModel):
    """A placed order as reported by the server.

    ``is_active`` is always derived from ``status``.
    """

    id: int
    order_number: str
    status: OrderStatus
    items: List[OrderLineItem] = []
    total: Union[float, str] = 0
    currency: str = "LKR"
    table_identifier: Optional[str] = None
    notes: Optional[str] = None
    is_active: bool = False
    placed_at: str
    preparing_at: Optional[str] = None
    ready_at: Optional[str] = None
    delivered_at: Optional[str] = None

    @model_validator(mode="after")
    def _derive_is_active(self) -> "OrderSummary":
        self.is_active = self.status.is_active
        return self

    @property
    def formatted_total(self) -> str:
        return format_price(self.total, self.currency)


T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard ``{success, data, message}`` envelope."""

    success: bool
    data: Optional[T] = None
    message: Optional[str] = None


def _none_to_empty(value):
    return [] if value is None else value


class SessionInitRequest(BaseModel):
    """Body of the session init call."""

    session_token: Optional[str] = None
    device_id: str


class SessionInitData(BaseModel):
    """Authoritative token plus the diner's orders."""

    session_token: str
    active_orders: List[OrderSummary] = []
    recent_orders: List[OrderSummary] = []

    @field_validator("active_orders", "recent_orders", mode="before")
    @classmethod
    def empty_when_null(cls, value):
        return _none_to_empty(value)

    def all_orders(self) -> List[OrderSummary]:
        return [*self.active_orders, *self.recent_orders]


class SessionStatusData(BaseModel):
    """Current orders of a session, split by state."""

    active_orders: List[OrderSummary] = []
    done_orders: List[OrderSummary] = []

    @field_validator("active_orders", "done_orders", mode="before")
    @classmethod
    def empty_when_null(cls, value):
        return _none_to_empty(value)

    def all_orders(self) -> List[OrderSummary]:
        return [*self.active_orders, *self.done_orders]


class PlaceOrderRequest(BaseModel):
    """Body of the order placement call."""

    items: List[OrderLineItem]
    currency: str = "LKR"
    notes: str = ""

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
