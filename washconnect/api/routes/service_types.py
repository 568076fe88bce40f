from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status

from washconnect.api.deps import get_service_types, require_provider
from washconnect.api.schemas.service_type import SeedResponse, ServiceTypeCreate, ServiceTypeOut
from washconnect.core.errors import InvalidOrder
from washconnect.core.security import Requester
from washconnect.services.service_types import ServiceTypeCatalog

router = APIRouter(prefix="/api/service-types", tags=["service-types"])


@router.get("", response_model=List[ServiceTypeOut])
def list_service_types(
    provider_id: Optional[int] = Query(None, description="Only types this provider offers (own + shared)"),
    catalog: ServiceTypeCatalog = Depends(get_service_types),
):
    return [ServiceTypeOut.model_validate(st) for st in catalog.list_service_types(provider_id)]


@router.post("", status_code=201, response_model=ServiceTypeOut)
def create_service_type(
    payload: ServiceTypeCreate = Body(...),
    requester: Requester = Depends(require_provider),
    catalog: ServiceTypeCatalog = Depends(get_service_types),
):
    """Provider-only: add a service type bound to the calling provider."""
    try:
        st = catalog.create_service_type(requester, **payload.model_dump())
    except InvalidOrder as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return ServiceTypeOut.model_validate(st)


@router.post("/seed", response_model=SeedResponse)
def seed_service_types(catalog: ServiceTypeCatalog = Depends(get_service_types)):
    """Create the default catalogue (Wash & Fold, Dry Cleaning, Ironing Service) if empty."""
    if catalog.seed_defaults():
        return {"created": True, "message": "Default services created"}
    return {"created": False, "message": "Services already exist"}
