from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError

from app.core.security import decode_token
from app.db.session import AsyncSessionLocal
from app.schemas.audit import Actor
from app.services.audit import AuditRecorder
from app.services.document_store import DocumentStore
from app.services.entities import EntityRegistry

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_current_user(token: Annotated[str, Depends(oauth2_scheme)]) -> Actor:
    """Validate the bearer JWT and return the calling user and tenant."""
    credentials_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_token(token)
    except JWTError:
        raise credentials_exc
    if payload.get("type") != "access":
        raise credentials_exc
    user_id: str | None = payload.get("sub")
    email: str | None = payload.get("email")
    if not user_id or not email:
        raise credentials_exc
    return Actor(user_id=user_id, user_email=email, tenant_id=payload.get("tenant_id") or user_id)


@lru_cache
def get_document_store() -> DocumentStore:
    return DocumentStore(AsyncSessionLocal)


def get_entity_registry(request: Request) -> EntityRegistry:
    return request.app.state.entity_registry


def get_audit_recorder(
    store: Annotated[DocumentStore, Depends(get_document_store)],
) -> AuditRecorder:
    return AuditRecorder(store)
