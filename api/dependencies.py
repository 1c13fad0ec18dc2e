"""
Request dependencies shared by the API routes.

Authentication happens upstream; the gateway forwards the resolved caller in
the `X-User-Id` header and this module only loads that user.
"""
import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from api.models import User
from api.services.database import get_db

logger = logging.getLogger(__name__)


def get_current_user(
    x_user_id: Optional[int] = Header(default=None, alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> User:
    """Load the authenticated caller."""
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Missing user identity")

    user = db.get(User, x_user_id)
    if user is None:
        logger.warning(f"Digest requested for unknown user {x_user_id}")
        raise HTTPException(status_code=404, detail="User not found")
    return user
