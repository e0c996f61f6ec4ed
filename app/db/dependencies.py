"""FastAPI dependencies for storage and service injection and auth."""

from typing import Any, Dict

from fastapi import Depends, Request
from fastapi.security import OAuth2PasswordBearer

from app.auth import decode_access_token
from app.errors import Unauthorized
from app.services import CatalogService, IdentityService, OrderLedger
from app.storage import Storage


oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/users/login", auto_error=False)


def get_storage(request: Request) -> Storage:
    """
    Return the storage built at startup.

    The storage lives on app.state so tests can swap it out or override
    this dependency.
    """
    return request.app.state.storage


def get_ledger(storage: Storage = Depends(get_storage)) -> OrderLedger:
    return OrderLedger(storage)


def get_catalog(storage: Storage = Depends(get_storage)) -> CatalogService:
    return CatalogService(storage)


def get_identity(storage: Storage = Depends(get_storage)) -> IdentityService:
    return IdentityService(storage)


def get_current_user(
    token: str = Depends(oauth2_scheme),
    identity: IdentityService = Depends(get_identity),
) -> Dict[str, Any]:
    """Get the current user from the bearer JWT."""
    if not token:
        raise Unauthorized("Not authenticated.")
    payload = decode_access_token(token)
    user = identity.storage.get_user(payload["sub"])
    if user is None:
        raise Unauthorized("Could not validate credentials.")
    return user
