from fastapi import Depends, Header
from sqlalchemy.orm import Session
from typing import Optional
import logging

from . import models, schemas
from .crud.users import users
from .database import get_db
from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)


def authenticate_user(db: Session, username: str, password: str) -> Optional[models.UserMaster]:
    """
    Authenticate a user with username and password against UserMaster.

    Returns:
        UserMaster object if authentication successful, None otherwise
    """
    user = users.authenticate_user(db, username, password)
    if not user:
        logger.warning(f"Failed login for username '{username}'")
    return user


def register_user(db: Session, user_data: schemas.UserMasterCreate) -> models.UserMaster:
    """
    Register a new user in UserMaster with a hashed password.

    Raises:
        ConflictError: If the username is already taken
    """
    user = users.create_user(db, user=user_data)
    logger.info(f"Registered user {user.username} with role {user.role}")
    return user


def get_current_actor(
    x_user_id: Optional[int] = Header(None, alias="X-User-Id"),
    db: Session = Depends(get_db)
) -> models.UserMaster:
    """
    The user every mutation is attributed to, taken from the X-User-Id header.

    Raises:
        AuthenticationError: If the header is missing or names no active user
    """
    if x_user_id is None:
        raise AuthenticationError("X-User-Id header is required")

    user = users.get(db, x_user_id)
    if not user or user.status != models.RecordStatus.ACTIVE.value:
        raise AuthenticationError(f"Unknown or inactive user {x_user_id}", user_id=x_user_id)
    return user
