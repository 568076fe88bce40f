from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ServiceTypeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    price_per_unit: float = Field(..., ge=0.0)
    unit: str = Field(..., min_length=1, max_length=20, description="e.g. 'lb' or 'item'")
    is_active: bool = True


class ServiceTypeOut(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    price_per_unit: float
    unit: str
    provider_id: Optional[int] = None
    is_active: bool = True

    model_config = ConfigDict(from_attributes=True)


class SeedResponse(BaseModel):
    created: bool
    message: str
