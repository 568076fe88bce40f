# washconnect/api/routes/orders.py
from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException, status

from washconnect.api.deps import get_order_service, get_requester, require_client
from washconnect.api.schemas.order import (
    LifecycleOut,
    OrderCreate,
    OrderOut,
    OrderResponse,
    StatusChangeRequest,
    StatusChangeResponse,
    StatusUpdateOut,
)
from washconnect.core.errors import (
    Forbidden,
    InvalidOrder,
    InvalidStatus,
    InvalidTransition,
    OptimisticLockError,
    OrderNotFound,
    ServiceTypeNotFound,
)
from washconnect.core.security import Requester
from washconnect.models.order import ALLOWED_TRANSITIONS, ORDER_STATUSES, TERMINAL_STATUSES, OrderStatus
from washconnect.services.orders import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


def _http_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (OrderNotFound, ServiceTypeNotFound)):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, Forbidden):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    if isinstance(exc, OptimisticLockError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    # InvalidStatus, InvalidTransition, InvalidOrder
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))


@router.get("/statuses", response_model=LifecycleOut)
def get_lifecycle():
    """The status enum and the allowed transitions between statuses."""
    return {
        "statuses": ORDER_STATUSES,
        "initial": OrderStatus.PENDING.value,
        "terminal": list(TERMINAL_STATUSES),
        "transitions": ALLOWED_TRANSITIONS,
    }


@router.post("", status_code=201, response_model=OrderResponse)
def create_order(
    payload: OrderCreate = Body(...),
    requester: Requester = Depends(require_client),
    service: OrderService = Depends(get_order_service),
):
    """
    Place an order. The order starts as 'pending' with an "Order created"
    history entry and gets a generated order number (e.g. WC-7Q2ZK).
    """
    try:
        order, _ = service.create_order(requester, **payload.model_dump())
    except (Forbidden, ServiceTypeNotFound, InvalidOrder) as e:
        raise _http_error(e)
    return {"ok": True, "order": OrderOut.model_validate(order)}


@router.get("", response_model=List[OrderOut])
def list_orders(requester: Requester = Depends(get_requester), service: OrderService = Depends(get_order_service)):
    """
    List orders for the current requester: clients see the orders they
    placed, providers the orders assigned to them. Newest first.
    """
    return [OrderOut.model_validate(o) for o in service.list_orders(requester)]


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, requester: Requester = Depends(get_requester),
              service: OrderService = Depends(get_order_service)):
    try:
        order = service.get_order(order_id, requester)
    except (OrderNotFound, Forbidden) as e:
        raise _http_error(e)
    return OrderOut.model_validate(order)


@router.post("/{order_id}/status", response_model=StatusChangeResponse)
def change_order_status(
    order_id: int,
    payload: StatusChangeRequest = Body(...),
    requester: Requester = Depends(get_requester),
    service: OrderService = Depends(get_order_service),
):
    """
    Transition an order to another status.
    Body: { "status": "<target>", "notes": "...", "expected_updated_at": "<iso datetime, optional>" }
    Only the order's client or its assigned provider may do this.
    Returns the new history entry and the updated order.
    """
    try:
        update, order = service.transition_status(
            order_id,
            payload.status.strip(),
            requester,
            notes=payload.notes,
            expected_updated_at=payload.expected_updated_at,
        )
    except (OrderNotFound, Forbidden, InvalidStatus, InvalidTransition, OptimisticLockError) as e:
        raise _http_error(e)

    return {
        "ok": True,
        "status_update": StatusUpdateOut.model_validate(update),
        "order": OrderOut.model_validate(order),
    }


@router.get("/{order_id}/history", response_model=List[StatusUpdateOut])
def get_order_history(order_id: int, requester: Requester = Depends(get_requester),
                      service: OrderService = Depends(get_order_service)):
    """Status history of an order, oldest first."""
    try:
        records = service.get_history(order_id, requester)
    except (OrderNotFound, Forbidden) as e:
        raise _http_error(e)
    return [StatusUpdateOut.model_validate(r) for r in records]
