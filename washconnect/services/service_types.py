import logging
from typing import List, Optional

from washconnect.core.errors import Forbidden, InvalidOrder, ServiceTypeNotFound
from washconnect.core.security import Requester
from washconnect.database import SERVICE_TYPES, Storage
from washconnect.models.service_type import DEFAULT_SERVICE_TYPES, ServiceType

logger = logging.getLogger(__name__)


class ServiceTypeCatalog:
    """Service types offered on the marketplace (shared or per provider)."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def get(self, service_type_id: int) -> Optional[ServiceType]:
        row = self.storage.get_record(SERVICE_TYPES, "id", service_type_id)
        return ServiceType.from_dict(row) if row else None

    def require(self, service_type_id: int) -> ServiceType:
        st = self.get(service_type_id)
        if st is None:
            raise ServiceTypeNotFound(service_type_id)
        return st

    def list_service_types(self, provider_id: Optional[int] = None) -> List[ServiceType]:
        """
        All service types, or, with `provider_id`, the provider's own types plus
        the shared ones.
        """
        types = [ServiceType.from_dict(r) for r in self.storage.list_records(SERVICE_TYPES)]
        if provider_id is not None:
            types = [st for st in types if st.offered_by(provider_id)]
        return sorted(types, key=lambda st: st.id or 0)

    def create_service_type(self, requester: Requester, name: str, price_per_unit: float, unit: str,
                            description: Optional[str] = None, is_active: bool = True) -> ServiceType:
        if not requester.is_provider:
            raise Forbidden("Only providers can create service types")
        if price_per_unit < 0:
            raise InvalidOrder("price_per_unit must not be negative")
        st = ServiceType(name=name, price_per_unit=price_per_unit, unit=unit, description=description,
                         provider_id=requester.provider_id, is_active=is_active)
        row = self.storage.create_record(SERVICE_TYPES, st.to_dict(), id_field="id")
        logger.info("Provider %s created service type %s (%s)", requester.provider_id, row["id"], name)
        return ServiceType.from_dict(row)

    def seed_defaults(self) -> bool:
        """Insert the default catalogue if no service type exists yet. Returns True if anything was created."""
        with self.storage.atomic():
            if self.storage.list_records(SERVICE_TYPES):
                return False
            for st in DEFAULT_SERVICE_TYPES:
                self.storage.create_record(SERVICE_TYPES, st.to_dict(), id_field="id")
        logger.info("Seeded %d default service types", len(DEFAULT_SERVICE_TYPES))
        return True
