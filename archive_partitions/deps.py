import hmac
from typing import Optional

from fastapi import Header, HTTPException, status

from .config import settings
from .partitioning.store import PartitionStore
from .services.partition_service import get_store


def get_partition_store() -> PartitionStore:
    """Dependency returning the shared partition store (overridden in tests)."""
    return get_store()


def require_maintenance_key(
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None),
) -> None:
    """
    Require the maintenance API key.

    Supports:
    - X-API-Key: <key>
    - Authorization: Bearer <key>
    """
    expected = settings.MAINTENANCE_API_KEY
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Maintenance API disabled: MAINTENANCE_API_KEY is not configured",
        )

    api_key = x_api_key
    if not api_key and authorization and authorization.startswith("Bearer "):
        api_key = authorization[len("Bearer "):]

    if not api_key or not hmac.compare_digest(api_key, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
