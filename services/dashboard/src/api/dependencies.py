from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status
from src.core.config import settings
from src.services.metrics_cache import MetricsCacheRegistry


def get_registry(request: Request) -> MetricsCacheRegistry:
    return request.app.state.registry  # type: ignore[return-value]


def get_bearer_token(authorization: Optional[str] = Header(default=None)) -> Optional[str]:
    """Caller's bearer credential, forwarded to the upstream API as-is."""
    if not authorization:
        return None
    scheme, _, credential = authorization.partition(" ")
    if scheme.lower() != "bearer" or not credential.strip():
        return None
    return credential.strip()


def require_upstream_token(token: Optional[str] = Depends(get_bearer_token)) -> str:
    """Credential used for upstream reads: the caller's, else the service token."""
    resolved = token or settings.api_token
    if not resolved:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return resolved
