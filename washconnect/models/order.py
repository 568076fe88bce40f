# washconnect/models/order.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from washconnect.core.state_machine import StateMachine, TransitionEntry, pipeline_transitions
from washconnect.utils.coerce import iso, opt_datetime, opt_float, opt_int, opt_str


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PICKED_UP = "picked_up"
    IN_PROGRESS = "in_progress"
    QUALITY_CHECK = "quality_check"
    READY_FOR_DELIVERY = "ready_for_delivery"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


ORDER_STATUSES = [s.value for s in OrderStatus]
TERMINAL_STATUSES = (OrderStatus.COMPLETED.value, OrderStatus.CANCELLED.value)

# pending -> ... -> completed; any non-terminal state may jump forward or be cancelled
ALLOWED_TRANSITIONS = pipeline_transitions(
    [s for s in ORDER_STATUSES if s != OrderStatus.CANCELLED.value],
    abort_state=OrderStatus.CANCELLED.value,
)


@dataclass
class Order:
    """
    Order domain model. Status changes go through `transition_to`, which
    validates against ALLOWED_TRANSITIONS and stamps the timestamps.
    """
    client_id: int
    quantity: float
    id: Optional[int] = None
    provider_id: Optional[int] = None
    service_type_id: Optional[int] = None
    status: OrderStatus = OrderStatus.PENDING
    special_instructions: Optional[str] = None
    scheduled_pickup_time: Optional[datetime] = None
    scheduled_delivery_time: Optional[datetime] = None
    actual_pickup_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    total: Optional[float] = None
    tax: Optional[float] = None
    delivery_fee: Optional[float] = None
    order_number: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def _make_state_machine(self) -> StateMachine:
        sm = StateMachine(state=self.status.value, allowed_transitions=ALLOWED_TRANSITIONS, states=ORDER_STATUSES)
        sm.on_enter(OrderStatus.PICKED_UP.value, lambda e: setattr(self, "actual_pickup_time", e["at"]))
        sm.on_enter(OrderStatus.DELIVERED.value, lambda e: setattr(self, "actual_delivery_time", e["at"]))
        return sm

    @property
    def is_terminal(self) -> bool:
        return self.status.value in TERMINAL_STATUSES

    def transition_to(self, new_status: str, at: Optional[datetime] = None) -> TransitionEntry:
        """
        Move to `new_status`. Raises InvalidStatus or InvalidTransition and
        leaves the order untouched in that case. `updated_at` never moves
        backwards, even if the clock does.
        """
        if at is not None and self.updated_at is not None and at < self.updated_at:
            at = self.updated_at
        entry = self._make_state_machine().apply(new_status, at=at)
        self.status = OrderStatus(entry["to"])
        self.updated_at = entry["at"]
        return entry

    def involves(self, requester) -> bool:
        """True if `requester` is this order's client or its assigned provider."""
        if requester.is_client:
            return self.client_id == requester.user_id
        if requester.is_provider:
            return self.provider_id is not None and self.provider_id == requester.provider_id
        return False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Order":
        if d is None:
            raise ValueError("Cannot construct Order from None")
        return cls(
            id=opt_int(d.get("id")),
            client_id=int(float(d.get("client_id"))),
            provider_id=opt_int(d.get("provider_id")),
            service_type_id=opt_int(d.get("service_type_id")),
            status=OrderStatus(d.get("status") or OrderStatus.PENDING.value),
            quantity=float(d.get("quantity") or 0.0),
            special_instructions=opt_str(d.get("special_instructions")),
            scheduled_pickup_time=opt_datetime(d.get("scheduled_pickup_time")),
            scheduled_delivery_time=opt_datetime(d.get("scheduled_delivery_time")),
            actual_pickup_time=opt_datetime(d.get("actual_pickup_time")),
            actual_delivery_time=opt_datetime(d.get("actual_delivery_time")),
            total=opt_float(d.get("total")),
            tax=opt_float(d.get("tax")),
            delivery_fee=opt_float(d.get("delivery_fee")),
            order_number=opt_str(d.get("order_number")),
            created_at=opt_datetime(d.get("created_at")),
            updated_at=opt_datetime(d.get("updated_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the order into a storage row: enum -> value, datetimes -> ISO strings.
        """
        return {
            "id": self.id,
            "client_id": self.client_id,
            "provider_id": self.provider_id,
            "service_type_id": self.service_type_id,
            "status": self.status.value,
            "quantity": float(self.quantity),
            "special_instructions": self.special_instructions or "",
            "scheduled_pickup_time": iso(self.scheduled_pickup_time),
            "scheduled_delivery_time": iso(self.scheduled_delivery_time),
            "actual_pickup_time": iso(self.actual_pickup_time),
            "actual_delivery_time": iso(self.actual_delivery_time),
            "total": self.total,
            "tax": self.tax,
            "delivery_fee": self.delivery_fee,
            "order_number": self.order_number or "",
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }
