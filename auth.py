"""
Request identity for the chat and conversation endpoints.

Credentials are checked upstream (login service / API gateway), which
forwards the authenticated user id in the X-User-Id header. This module
only reads that header.
"""

from typing import Optional

from fastapi import Header, HTTPException, status

USER_ID_HEADER = "X-User-Id"


async def optional_user_id(x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER)) -> Optional[str]:
    """Authenticated user id, or None for anonymous visitors."""
    if x_user_id is None:
        return None
    user_id = x_user_id.strip()
    return user_id or None


async def require_user_id(x_user_id: Optional[str] = Header(None, alias=USER_ID_HEADER)) -> str:
    """Authenticated user id; 401 when the request is anonymous."""
    user_id = await optional_user_id(x_user_id)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Authentication required", "code": "AUTH_REQUIRED"}
        )
    return user_id
