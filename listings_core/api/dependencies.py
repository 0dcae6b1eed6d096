"""Request-scoped dependencies shared by the routers."""

from typing import Optional

from fastapi import Header, HTTPException, Request, status

from listings_core.config import AppSettings
from listings_core.error_handling import OperationResult
from listings_core.store import Repositories


def get_repos(request: Request) -> Repositories:
    return request.app.state.repos


def get_settings(request: Request) -> AppSettings:
    return request.app.state.settings


def optional_user(x_user_id: Optional[str] = Header(None)) -> Optional[str]:
    return x_user_id or None


def require_user(x_user_id: Optional[str] = Header(None)) -> str:
    """Caller identity from the X-User-Id header set by the auth gateway."""
    if not x_user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return x_user_id


def raise_for_result(result: OperationResult) -> None:
    """Map a failed operation onto an HTTP error."""
    if result.success:
        return
    code = status.HTTP_503_SERVICE_UNAVAILABLE if result.retryable else status.HTTP_400_BAD_REQUEST
    raise HTTPException(status_code=code, detail=result.error)
