# washconnect/models/service_type.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Optional

from washconnect.utils.coerce import as_bool, opt_int, opt_str


@dataclass
class ServiceType:
    name: str
    price_per_unit: float
    unit: str
    description: Optional[str] = None
    provider_id: Optional[int] = None  # None: offered by every provider
    is_active: bool = True
    id: Optional[int] = None

    def offered_by(self, provider_id: int) -> bool:
        return self.provider_id is None or self.provider_id == provider_id

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ServiceType":
        if d is None:
            raise ValueError("Cannot construct ServiceType from None")
        return cls(
            id=opt_int(d.get("id")),
            name=str(d.get("name") or ""),
            description=opt_str(d.get("description")),
            price_per_unit=float(d.get("price_per_unit") or 0.0),
            unit=str(d.get("unit") or "item"),
            provider_id=opt_int(d.get("provider_id")),
            is_active=as_bool(d.get("is_active"), default=True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description or "",
            "price_per_unit": float(self.price_per_unit),
            "unit": self.unit,
            "provider_id": self.provider_id,
            "is_active": bool(self.is_active),
        }


DEFAULT_SERVICE_TYPES = [
    ServiceType(name="Wash & Fold", description="Regular laundry, washed and neatly folded",
                price_per_unit=1.75, unit="lb"),
    ServiceType(name="Dry Cleaning", description="Professional cleaning for delicate fabrics",
                price_per_unit=4.99, unit="item"),
    ServiceType(name="Ironing Service", description="Crisp, professionally pressed clothing",
                price_per_unit=2.50, unit="item"),
]
