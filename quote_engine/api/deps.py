"""FastAPI dependencies."""

from fastapi import Depends, Header, HTTPException, Request, status

from quote_engine.container import Services


def get_services(request: Request) -> Services:
    """Dependency for the service graph built at startup."""
    return request.app.state.services


async def get_user_id(x_user_id: str = Header(..., alias="X-User-Id")) -> str:
    """Authenticated requester id, forwarded by the gateway."""
    return x_user_id


async def get_contractor_id(x_contractor_id: str = Header(..., alias="X-Contractor-Id")) -> str:
    """Authenticated contractor id, forwarded by the gateway."""
    return x_contractor_id


async def get_admin_id(x_admin_id: str = Header(..., alias="X-Admin-Id")) -> str:
    """Acting administrator, recorded on reviews, assignments and penalties."""
    return x_admin_id


async def require_admin_api_key(
    x_admin_api_key: str = Header(..., alias="X-Admin-API-Key"),
    services: Services = Depends(get_services),
) -> None:
    """
    Dependency to require admin API key for protected endpoints.

    Args:
        x_admin_api_key: Admin API key from X-Admin-API-Key header

    Raises:
        HTTPException: 503 if no key is configured, 403 if invalid
    """
    settings = services.settings
    if not settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin API key not configured"
        )

    if x_admin_api_key != settings.admin_api_key:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin API key"
        )
