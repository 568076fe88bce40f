# washconnect/api/deps.py
from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from washconnect.core.security import InvalidToken, Requester, decode_requester
from washconnect.services.orders import OrderService
from washconnect.services.service_types import ServiceTypeCatalog

bearer_scheme = HTTPBearer(auto_error=False)


def get_order_service(request: Request) -> OrderService:
    return request.app.state.order_service


def get_service_types(request: Request) -> ServiceTypeCatalog:
    return request.app.state.order_service.service_types


async def get_requester(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Requester:
    """
    Resolve the requester from the Authorization header (Bearer) or from the
    'access_token' cookie. Raises 401 if neither carries a valid token.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Not authenticated",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token = credentials.credentials if credentials else request.cookies.get("access_token")
    if not token:
        raise credentials_exception
    try:
        return decode_requester(token)
    except InvalidToken:
        raise credentials_exception


def require_client(requester: Requester = Depends(get_requester)) -> Requester:
    if not requester.is_client:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Client account required")
    return requester


def require_provider(requester: Requester = Depends(get_requester)) -> Requester:
    if not requester.is_provider:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Provider account required")
    return requester
