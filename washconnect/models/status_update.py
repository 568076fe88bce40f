# washconnect/models/status_update.py
from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from washconnect.utils.coerce import iso, opt_datetime, opt_int, opt_str

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class StatusUpdate:
    """
    One entry of an order's status history. Records are only ever appended,
    so the dataclass is frozen.
    """
    order_id: int
    status: str
    notes: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None

    def sort_key(self):
        # created_at first, insertion id breaks ties between equal timestamps
        return (self.created_at or _EPOCH, self.id or 0)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "StatusUpdate":
        if d is None:
            raise ValueError("Cannot construct StatusUpdate from None")
        return cls(
            id=opt_int(d.get("id")),
            order_id=int(float(d.get("order_id"))),
            status=str(d.get("status") or ""),
            notes=opt_str(d.get("notes")),
            created_at=opt_datetime(d.get("created_at")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "status": self.status,
            "notes": self.notes or "",
            "created_at": iso(self.created_at),
        }
