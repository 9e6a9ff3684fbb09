"""Payer identification and rate limiting helpers for the API."""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy.ext.asyncio import AsyncSession

from .database import User, UserRepository, get_db

logger = logging.getLogger(__name__)

# Rate limiter
limiter = Limiter(key_func=get_remote_address)


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the signed-in donor from the ``X-User-Id`` header.

    The header is set by the session layer in front of this service.

    Raises:
        HTTPException: 401 if the header is missing or names no user.
    """
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Not signed in")
    user = await UserRepository(db).get_by_id(x_user_id)
    if user is None:
        logger.warning(f"Unknown user id {x_user_id} on authenticated route")
        raise HTTPException(status_code=401, detail="Not signed in")
    return user
