# tests/test_order_lifecycle.py
# Service-level lifecycle tests; the `storage` fixture runs each one on both backends.
import threading
import time
from datetime import timezone

import pytest

from washconnect.config import Settings
from washconnect.core.errors import (
    Forbidden,
    InvalidOrder,
    InvalidStatus,
    InvalidTransition,
    OptimisticLockError,
    OrderNotFound,
    ServiceTypeNotFound,
)
from washconnect.database import FileBackedStorage
from washconnect.models.order import Order, OrderStatus
from washconnect.services.orders import OrderService, OrderStore

from conftest import ALICE, BOB, FRESH, SUDS


def _assert_consistent(service, order_id):
    order = service.orders.get(order_id)
    history = service.history.history(order_id)
    assert history[-1].status == order.status.value
    stamps = [h.created_at for h in history]
    assert stamps == sorted(stamps)
    assert order.updated_at >= order.created_at


def test_create_then_confirm_then_complete(service):
    order, first = service.create_order(ALICE, quantity=5.0, provider_id=SUDS.provider_id)
    assert order.status == OrderStatus.PENDING
    assert order.order_number.startswith("WC-") and len(order.order_number) == 8
    history = service.get_history(order.id, ALICE)
    assert [(h.status, h.notes) for h in history] == [("pending", "Order created")]
    assert first.id == history[0].id

    update, order = service.transition_status(order.id, "confirmed", SUDS)
    assert order.status == OrderStatus.CONFIRMED
    assert update.status == "confirmed"
    history = service.get_history(order.id, ALICE)
    assert len(history) == 2 and history[1].status == "confirmed"

    service.transition_status(order.id, "completed", ALICE, notes="All good")
    history = service.get_history(order.id, SUDS)
    assert [h.status for h in history] == ["pending", "confirmed", "completed"]
    assert history[-1].notes == "All good"
    _assert_consistent(service, order.id)


def test_foreign_client_is_forbidden_and_nothing_changes(service):
    order, _ = service.create_order(ALICE, quantity=3.0, provider_id=SUDS.provider_id)
    with pytest.raises(Forbidden):
        service.transition_status(order.id, "confirmed", BOB)
    with pytest.raises(Forbidden):
        service.transition_status(order.id, "confirmed", FRESH)
    with pytest.raises(Forbidden):
        service.get_history(order.id, BOB)
    assert service.orders.get(order.id).status == OrderStatus.PENDING
    assert len(service.history.list_for_order(order.id)) == 1


def test_unassigned_order_rejects_providers(service):
    order, _ = service.create_order(ALICE, quantity=3.0)
    with pytest.raises(Forbidden):
        service.get_order(order.id, SUDS)


def test_unknown_status_is_rejected_without_history(service):
    order, _ = service.create_order(ALICE, quantity=2.0, provider_id=SUDS.provider_id)
    with pytest.raises(InvalidStatus):
        service.transition_status(order.id, "shipped", ALICE)
    assert service.orders.get(order.id).status == OrderStatus.PENDING
    assert len(service.history.list_for_order(order.id)) == 1


def test_missing_order(service):
    with pytest.raises(OrderNotFound):
        service.transition_status(999, "confirmed", ALICE)
    with pytest.raises(OrderNotFound):
        service.get_history(999, ALICE)


def test_not_found_wins_over_invalid_status(service):
    with pytest.raises(OrderNotFound):
        service.transition_status(12345, "shipped", BOB)


def test_backward_and_terminal_transitions_rejected(service):
    order, _ = service.create_order(ALICE, quantity=2.0, provider_id=SUDS.provider_id)
    service.transition_status(order.id, "in_progress", SUDS)
    with pytest.raises(InvalidTransition):
        service.transition_status(order.id, "confirmed", SUDS)
    service.transition_status(order.id, "cancelled", ALICE)
    with pytest.raises(InvalidTransition):
        service.transition_status(order.id, "completed", SUDS)
    assert [h.status for h in service.get_history(order.id, ALICE)] == ["pending", "in_progress", "cancelled"]
    _assert_consistent(service, order.id)


def test_full_pipeline_stamps_actual_times(service):
    order, _ = service.create_order(ALICE, quantity=9.0, provider_id=SUDS.provider_id)
    for status in ("confirmed", "picked_up", "in_progress", "quality_check", "ready_for_delivery",
                   "out_for_delivery", "delivered", "completed"):
        _, order = service.transition_status(order.id, status, SUDS)
    assert order.actual_pickup_time is not None
    assert order.actual_delivery_time is not None
    assert order.actual_pickup_time <= order.actual_delivery_time
    assert len(service.get_history(order.id, ALICE)) == 9
    _assert_consistent(service, order.id)


def test_expected_updated_at_mismatch_is_a_conflict(service):
    order, _ = service.create_order(ALICE, quantity=2.0, provider_id=SUDS.provider_id)
    seen = order.updated_at
    service.transition_status(order.id, "confirmed", SUDS, expected_updated_at=seen)
    with pytest.raises(OptimisticLockError):
        service.transition_status(order.id, "picked_up", SUDS, expected_updated_at=seen)
    assert service.orders.get(order.id).status == OrderStatus.CONFIRMED
    assert len(service.history.list_for_order(order.id)) == 2


def test_failed_order_update_leaves_no_orphan_history(service, monkeypatch):
    order, _ = service.create_order(ALICE, quantity=2.0, provider_id=SUDS.provider_id)

    def boom(self, order):
        raise RuntimeError("disk full")

    monkeypatch.setattr(OrderStore, "update", boom)
    with pytest.raises(RuntimeError):
        service.transition_status(order.id, "confirmed", SUDS)
    monkeypatch.undo()

    assert service.orders.get(order.id).status == OrderStatus.PENDING
    assert [h.status for h in service.history.list_for_order(order.id)] == ["pending"]
    # the burnt history id is not handed out again
    update, _ = service.transition_status(order.id, "confirmed", SUDS)
    assert update.id == 3


def test_only_clients_place_orders(service):
    with pytest.raises(Forbidden):
        service.create_order(SUDS, quantity=1.0)
    with pytest.raises(InvalidOrder):
        service.create_order(ALICE, quantity=0)


def test_service_type_must_exist_and_be_offered(service):
    with pytest.raises(ServiceTypeNotFound):
        service.create_order(ALICE, quantity=1.0, service_type_id=42)
    own = service.service_types.create_service_type(FRESH, name="Duvet", price_per_unit=12.0, unit="item")
    with pytest.raises(InvalidOrder):
        service.create_order(ALICE, quantity=1.0, provider_id=SUDS.provider_id, service_type_id=own.id)
    order, _ = service.create_order(ALICE, quantity=1.0, provider_id=FRESH.provider_id, service_type_id=own.id)
    assert order.service_type_id == own.id


def test_list_orders_per_role_newest_first(service):
    first, _ = service.create_order(ALICE, quantity=1.0, provider_id=SUDS.provider_id)
    second, _ = service.create_order(ALICE, quantity=2.0, provider_id=FRESH.provider_id)
    service.create_order(BOB, quantity=3.0, provider_id=SUDS.provider_id)

    assert [o.id for o in service.list_orders(ALICE)] == [second.id, first.id]
    assert len(service.list_orders(BOB)) == 1
    assert [o.client_id for o in service.list_orders(SUDS)] == [BOB.user_id, ALICE.user_id]
    assert [o.id for o in service.list_orders(FRESH)] == [second.id]


def test_ids_and_order_numbers_unique(service):
    orders = [service.create_order(ALICE, quantity=1.0)[0] for _ in range(5)]
    assert [o.id for o in orders] == [1, 2, 3, 4, 5]
    assert len({o.order_number for o in orders}) == 5


def test_concurrent_transitions_on_one_order_are_serialized(service):
    order, _ = service.create_order(ALICE, quantity=2.0, provider_id=SUDS.provider_id)
    outcomes = []

    def worker():
        try:
            service.transition_status(order.id, "confirmed", SUDS)
            outcomes.append("ok")
        except InvalidTransition:
            outcomes.append("rejected")

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("ok") == 1
    assert outcomes.count("rejected") == 7
    assert [h.status for h in service.get_history(order.id, ALICE)] == ["pending", "confirmed"]


def test_missing_orders_leave_no_lock_entries(service):
    for order_id in range(1000, 1050):
        with pytest.raises(OrderNotFound):
            service.transition_status(order_id, "confirmed", ALICE)
    assert len(service._order_locks) == 0


def test_offset_less_expected_updated_at_is_read_as_utc(service):
    order, _ = service.create_order(ALICE, quantity=2.0, provider_id=SUDS.provider_id)
    naive = order.updated_at.astimezone(timezone.utc).replace(tzinfo=None)
    _, order = service.transition_status(order.id, "confirmed", SUDS, expected_updated_at=naive)
    assert order.status == OrderStatus.CONFIRMED


def test_quantity_must_be_finite(service):
    for bad in (float("nan"), float("inf"), -1.0):
        with pytest.raises(InvalidOrder):
            service.create_order(ALICE, quantity=bad)


def test_services_sharing_a_data_dir_see_each_others_transitions(tmp_path, monkeypatch):
    first = OrderService(FileBackedStorage(tmp_path / "shared"), Settings())
    second = OrderService(FileBackedStorage(tmp_path / "shared"), Settings())
    order, _ = first.create_order(ALICE, quantity=2.0, provider_id=SUDS.provider_id)

    # hold the cancellation open after its checks so the other service races it
    original = Order.transition_to
    entered = threading.Event()

    def slow_transition(self, new_status, at=None):
        entry = original(self, new_status, at=at)
        if new_status == "cancelled":
            entered.set()
            time.sleep(0.3)
        return entry

    monkeypatch.setattr(Order, "transition_to", slow_transition)
    results = {}

    def worker(svc, target):
        try:
            svc.transition_status(order.id, target, ALICE)
            results[target] = "ok"
        except InvalidTransition:
            results[target] = "rejected"

    canceller = threading.Thread(target=worker, args=(first, "cancelled"))
    canceller.start()
    assert entered.wait(5)
    worker(second, "completed")
    canceller.join()

    assert results == {"cancelled": "ok", "completed": "rejected"}
    assert [h.status for h in second.get_history(order.id, ALICE)] == ["pending", "cancelled"]
    assert second.get_order(order.id, ALICE).status == OrderStatus.CANCELLED
