from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from washconnect.models.order import OrderStatus


class OrderCreate(BaseModel):
    quantity: float = Field(..., gt=0, allow_inf_nan=False, description="Weight (lb) or number of items")
    provider_id: Optional[int] = Field(None, description="Provider that will fulfil the order")
    service_type_id: Optional[int] = Field(None, description="Requested service type")
    special_instructions: Optional[str] = Field(None, max_length=2000)
    scheduled_pickup_time: Optional[datetime] = None
    scheduled_delivery_time: Optional[datetime] = None
    total: Optional[float] = Field(None, ge=0.0)
    tax: Optional[float] = Field(None, ge=0.0)
    delivery_fee: Optional[float] = Field(None, ge=0.0)


class OrderOut(BaseModel):
    id: int
    order_number: Optional[str] = None
    client_id: int
    provider_id: Optional[int] = None
    service_type_id: Optional[int] = None
    status: OrderStatus
    quantity: float
    special_instructions: Optional[str] = None
    scheduled_pickup_time: Optional[datetime] = None
    scheduled_delivery_time: Optional[datetime] = None
    actual_pickup_time: Optional[datetime] = None
    actual_delivery_time: Optional[datetime] = None
    total: Optional[float] = None
    tax: Optional[float] = None
    delivery_fee: Optional[float] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class StatusUpdateOut(BaseModel):
    id: int
    order_id: int
    status: str
    notes: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    ok: bool
    order: OrderOut


class StatusChangeRequest(BaseModel):
    # plain str so unknown values reach the lifecycle check (400) instead of failing validation (422)
    status: str = Field(..., description="Target status")
    notes: Optional[str] = Field(None, max_length=2000)
    expected_updated_at: Optional[datetime] = Field(
        None, description="Optimistic-lock check: the order's updated_at as last seen by the caller"
    )


class StatusChangeResponse(BaseModel):
    ok: bool
    status_update: StatusUpdateOut
    order: OrderOut


class LifecycleOut(BaseModel):
    statuses: List[str]
    initial: str
    terminal: List[str]
    transitions: Dict[str, List[str]]
