"""
Common dependencies for API routes.
"""
from fastapi import Header, HTTPException, Request, status
from typing import Optional
from rideshare.services.container import ServiceContainer


def get_container(request: Request) -> ServiceContainer:
    """Service container created at application startup."""
    return request.app.state.container


async def get_current_user_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """
    Get the acting user's id from the X-User-Id header.

    Authentication happens upstream; the core only needs to know who is acting.
    """
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return x_user_id.strip()
