"""
Requester context.

Credentials are checked elsewhere; this service only receives a signed
bearer token describing who is calling:

    {"sub": "<user id>", "user_type": "client" | "provider", "provider_id": <int | null>}

`create_access_token` mints such tokens (dev tooling and tests),
`decode_requester` verifies the signature and rebuilds the Requester.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import jwt, JWTError

from washconnect.config import settings

CLIENT = "client"
PROVIDER = "provider"
USER_TYPES = (CLIENT, PROVIDER)


class InvalidToken(Exception):
    pass


@dataclass(frozen=True)
class Requester:
    user_id: int
    user_type: str
    provider_id: Optional[int] = None

    @property
    def is_client(self) -> bool:
        return self.user_type == CLIENT

    @property
    def is_provider(self) -> bool:
        return self.user_type == PROVIDER


def create_access_token(requester: Requester, expires_minutes: Optional[int] = None,
                        secret: Optional[str] = None) -> str:
    minutes = settings.ACCESS_TOKEN_EXPIRE_MINUTES if expires_minutes is None else expires_minutes
    to_encode = {
        "sub": str(requester.user_id),
        "user_type": requester.user_type,
        "provider_id": requester.provider_id,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=minutes),
    }
    return jwt.encode(to_encode, secret or settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_requester(token: str, secret: Optional[str] = None) -> Requester:
    """
    Verify `token` and return the Requester it describes. Raises InvalidToken
    for bad signatures, expired tokens and malformed claims.
    """
    try:
        payload = jwt.decode(token, secret or settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        raise InvalidToken(str(e)) from e

    user_type = payload.get("user_type")
    if user_type not in USER_TYPES:
        raise InvalidToken(f"Unknown user_type {user_type!r}")
    try:
        user_id = int(payload.get("sub"))
        raw_provider = payload.get("provider_id")
        provider_id = int(raw_provider) if raw_provider not in (None, "") else None
    except (TypeError, ValueError) as e:
        raise InvalidToken("Malformed identity claims") from e
    if user_type == PROVIDER and provider_id is None:
        raise InvalidToken("Provider token without provider_id")
    return Requester(user_id=user_id, user_type=user_type, provider_id=provider_id)
