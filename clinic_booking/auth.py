"""
Caller identity resolution

Authentication happens upstream (API gateway / identity provider); by the time a
request reaches this service the authenticated user id is carried in the
X-User-Id header. These dependencies only resolve that id to a User row.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from .database import get_db
from .models import User

logger = logging.getLogger(__name__)


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> User:
    """Get current user from the forwarded identity header"""
    if not x_user_id:
        logger.warning("⚠️ Request without X-User-Id header")
        raise HTTPException(status_code=401, detail="Not authenticated")

    user = db.query(User).filter(User.id == x_user_id).first()
    if not user:
        logger.warning(f"⚠️ Unknown user id in X-User-Id: {x_user_id}")
        raise HTTPException(status_code=401, detail="Unknown user")

    logger.debug(f"✅ User resolved: {user.email}")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    """Get current user and verify they hold the admin role"""
    if user.role != "admin":
        logger.warning(f"⚠️ User {user.email} attempted to access an admin route")
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
