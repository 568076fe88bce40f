# washconnect/services/orders.py
"""
Order lifecycle: the order store, the append-only status history and the
service that ties them together.

    service = OrderService(storage)
    order, first = service.create_order(client, quantity=8.5, provider_id=2)
    update, order = service.transition_status(order.id, "confirmed", provider, notes="On our way")
    service.get_history(order.id, client)   # oldest first
"""
import logging
import math
import secrets
import string
import threading
import weakref
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from washconnect.config import Settings, settings
from washconnect.core.errors import (
    Forbidden,
    InvalidOrder,
    InvalidStatus,
    OptimisticLockError,
    OrderNotFound,
)
from washconnect.core.security import Requester
from washconnect.database import ORDERS, STATUS_UPDATES, Storage
from washconnect.models.order import ORDER_STATUSES, Order, OrderStatus
from washconnect.models.status_update import StatusUpdate
from washconnect.services.service_types import ServiceTypeCatalog
from washconnect.utils.coerce import opt_datetime

logger = logging.getLogger(__name__)

ORDER_CREATED_NOTE = "Order created"
_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _newest_first(order: Order):
    return (order.created_at or datetime.min.replace(tzinfo=timezone.utc), order.id or 0)


class OrderStore:
    """Owns the order rows."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def get(self, order_id: int) -> Optional[Order]:
        row = self.storage.get_record(ORDERS, "id", order_id)
        return Order.from_dict(row) if row else None

    def insert(self, order: Order) -> Order:
        row = self.storage.create_record(ORDERS, order.to_dict(), id_field="id")
        return Order.from_dict(row)

    def update(self, order: Order) -> Order:
        updates = order.to_dict()
        # id and creation time are immutable
        updates.pop("id")
        updates.pop("created_at")
        row = self.storage.update_record(ORDERS, "id", order.id, updates)
        if row is None:
            raise OrderNotFound(order.id)
        return Order.from_dict(row)

    def list_by(self, key: str, value: int) -> List[Order]:
        """Orders where `key` == `value`, newest first."""
        orders = [Order.from_dict(r) for r in self.storage.list_records(ORDERS, key, value)]
        return sorted(orders, key=_newest_first, reverse=True)

    def order_number_taken(self, order_number: str) -> bool:
        return self.storage.get_record(ORDERS, "order_number", order_number) is not None


class StatusHistoryStore:
    """Append-only log of StatusUpdate records."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def append(self, order_id: int, status: str, notes: Optional[str] = None,
               at: Optional[datetime] = None) -> StatusUpdate:
        update = StatusUpdate(order_id=order_id, status=status, notes=notes, created_at=at or _now())
        row = self.storage.create_record(STATUS_UPDATES, update.to_dict(), id_field="id")
        return StatusUpdate.from_dict(row)

    def list_for_order(self, order_id: int) -> List[StatusUpdate]:
        """Every record of the order, in storage order (no ordering guarantee)."""
        return [StatusUpdate.from_dict(r) for r in self.storage.list_records(STATUS_UPDATES, "order_id", order_id)]

    def history(self, order_id: int) -> List[StatusUpdate]:
        """Every record of the order, oldest first."""
        return sorted(self.list_for_order(order_id), key=StatusUpdate.sort_key)

    def latest(self, order_id: int) -> Optional[StatusUpdate]:
        records = self.history(order_id)
        return records[-1] if records else None


class OrderService:
    """
    Entry point for everything that reads or mutates orders.

    Transitions on the same order are serialized with an in-process lock per
    order id. The load, the checks and the writes (order row + history
    record) all run inside `storage.atomic()`, which also serializes
    processes sharing a file-backed data directory.
    """

    def __init__(self, storage: Storage, cfg: Settings = settings):
        self.storage = storage
        self.settings = cfg
        self.orders = OrderStore(storage)
        self.history = StatusHistoryStore(storage)
        self.service_types = ServiceTypeCatalog(storage)
        # entries vanish once no transition holds the lock
        self._order_locks: "weakref.WeakValueDictionary[int, threading.Lock]" = weakref.WeakValueDictionary()
        self._locks_guard = threading.Lock()

    def _lock_for(self, order_id: int) -> threading.Lock:
        with self._locks_guard:
            lock = self._order_locks.get(order_id)
            if lock is None:
                lock = threading.Lock()
                self._order_locks[order_id] = lock
            return lock

    def _load_for(self, order_id: int, requester: Requester) -> Order:
        order = self.orders.get(order_id)
        if order is None:
            raise OrderNotFound(order_id)
        if not order.involves(requester):
            raise Forbidden(f"Requester {requester.user_id} may not access order {order_id}")
        return order

    def _new_order_number(self) -> str:
        prefix = self.settings.ORDER_NUMBER_PREFIX
        length = self.settings.ORDER_NUMBER_LENGTH
        for _ in range(20):
            candidate = prefix + "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(length))
            if not self.orders.order_number_taken(candidate):
                return candidate
        raise RuntimeError("Could not generate a unique order number")

    # --- operations ---

    def create_order(self, requester: Requester, quantity: float, provider_id: Optional[int] = None,
                     service_type_id: Optional[int] = None, special_instructions: Optional[str] = None,
                     scheduled_pickup_time: Optional[datetime] = None,
                     scheduled_delivery_time: Optional[datetime] = None,
                     total: Optional[float] = None, tax: Optional[float] = None,
                     delivery_fee: Optional[float] = None) -> Tuple[Order, StatusUpdate]:
        """
        Place an order as `requester` (clients only). The order starts as
        pending with a single "Order created" history record.
        """
        if not requester.is_client:
            raise Forbidden("Only clients can place orders")
        if quantity is None or not math.isfinite(float(quantity)) or float(quantity) <= 0:
            raise InvalidOrder("quantity must be a positive number")
        if service_type_id is not None:
            service_type = self.service_types.require(service_type_id)
            if provider_id is not None and not service_type.offered_by(provider_id):
                raise InvalidOrder(f"Service type {service_type_id} is not offered by provider {provider_id}")

        now = _now()
        with self.storage.atomic():
            order = Order(
                client_id=requester.user_id,
                provider_id=provider_id,
                service_type_id=service_type_id,
                status=OrderStatus.PENDING,
                quantity=float(quantity),
                special_instructions=special_instructions,
                scheduled_pickup_time=scheduled_pickup_time,
                scheduled_delivery_time=scheduled_delivery_time,
                total=total,
                tax=tax,
                delivery_fee=delivery_fee,
                order_number=self._new_order_number(),
                created_at=now,
                updated_at=now,
            )
            order = self.orders.insert(order)
            first = self.history.append(order.id, order.status.value, ORDER_CREATED_NOTE, at=now)

        logger.info("Client %s created order %s (%s)", requester.user_id, order.id, order.order_number)
        return order, first

    def get_order(self, order_id: int, requester: Requester) -> Order:
        return self._load_for(order_id, requester)

    def list_orders(self, requester: Requester) -> List[Order]:
        """Clients see the orders they placed, providers the orders assigned to them; newest first."""
        if requester.is_client:
            return self.orders.list_by("client_id", requester.user_id)
        if requester.is_provider and requester.provider_id is not None:
            return self.orders.list_by("provider_id", requester.provider_id)
        return []

    def transition_status(self, order_id: int, target_status: str, requester: Requester,
                          notes: Optional[str] = None,
                          expected_updated_at: Optional[datetime] = None) -> Tuple[StatusUpdate, Order]:
        """
        Move an order to `target_status`.

        Raises, in this order of precedence: OrderNotFound, Forbidden,
        InvalidStatus, InvalidTransition, OptimisticLockError. Nothing is
        written when any of them is raised.
        """
        # no lock entry for ids that do not exist
        if self.orders.get(order_id) is None:
            raise OrderNotFound(order_id)
        expected_updated_at = opt_datetime(expected_updated_at)

        with self._lock_for(order_id), self.storage.atomic():
            # reload under the storage lock; another process may have moved it
            order = self._load_for(order_id, requester)
            if target_status not in ORDER_STATUSES:
                logger.warning("Rejected status %r for order %s", target_status, order_id)
                raise InvalidStatus(f"Invalid order status: {target_status!r}")

            previous_status = order.status.value
            previous_updated_at = order.updated_at
            try:
                entry = order.transition_to(target_status, at=_now())
            except ValueError:
                logger.warning("Rejected transition %s -> %s for order %s", previous_status, target_status, order_id)
                raise

            if expected_updated_at is not None and expected_updated_at != previous_updated_at:
                raise OptimisticLockError(
                    f"Order {order_id} was modified at {previous_updated_at}, expected {expected_updated_at}"
                )

            update = self.history.append(order.id, order.status.value, notes, at=entry["at"])
            order = self.orders.update(order)

        logger.info(
            "Order %s: %s -> %s by %s %s",
            order_id, previous_status, target_status, requester.user_type, requester.user_id,
        )
        return update, order

    def get_history(self, order_id: int, requester: Requester) -> List[StatusUpdate]:
        """The order's full status history, oldest first."""
        self._load_for(order_id, requester)
        return self.history.history(order_id)
