"""Boundary with the external authentication layer.

Authentication happens upstream; requests reach this service with the
resolved user id in the ``X-User-Id`` header, which is trusted as-is.
"""

from uuid import UUID

from fastapi import Header, HTTPException, status


async def get_current_user_id(
    x_user_id: UUID | None = Header(default=None),
) -> UUID:
    """Dependency that provides the id of the authenticated user."""
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing user identity",
        )
    return x_user_id
