from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from showcase.core.security import ADMIN_ROLE, decode_token
from showcase.services.catalog import CatalogRepository

bearer_scheme = HTTPBearer(auto_error=False)

_repository: CatalogRepository | None = None


def get_catalog_repository() -> CatalogRepository:
    global _repository
    if _repository is None:
        _repository = CatalogRepository()
    return _repository


async def require_admin(credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme)) -> str:
    """Authenticated-principal check for mutating catalog endpoints; returns the subject."""
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    payload = decode_token(credentials.credentials)
    if not payload or payload.get("type") != "access":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")

    subject = str(payload.get("sub") or "").strip()
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    if payload.get("role") != ADMIN_ROLE:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return subject
