from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from .base import InternalError, LedgerError, Pagination, atomic, get_db
from .. import auth, schemas
from ..crud.users import users
from ..exceptions import AuthenticationError

router = APIRouter()
logger = logging.getLogger(__name__)

# ============================================================================
# AUTHENTICATION ENDPOINTS
# ============================================================================

@router.post("/auth/register", response_model=schemas.UserMaster, tags=["Authentication"])
def register_user(user_data: schemas.UserMasterCreate, db: Session = Depends(get_db)):
    """Register a new user in UserMaster"""
    try:
        with atomic(db):
            user = auth.register_user(db=db, user_data=user_data)
        db.refresh(user)
        return user
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error registering user: {e}")
        raise InternalError("Failed to register user")

@router.post("/auth/login", response_model=schemas.UserMaster, tags=["Authentication"])
def login_user(credentials: schemas.UserLogin, db: Session = Depends(get_db)):
    """Authenticate user and return user information"""
    try:
        with atomic(db):
            user = auth.authenticate_user(db=db, username=credentials.username, password=credentials.password)
            if not user:
                raise AuthenticationError("Invalid username or password")
        db.refresh(user)
        return user
    except LedgerError:
        raise
    except Exception as e:
        logger.error(f"Error during login: {e}")
        raise InternalError("Failed to log in")

@router.get("/users", response_model=List[schemas.UserMaster], tags=["Users"])
def get_users(
    role: Optional[schemas.UserRole] = None,
    page: Pagination = Depends(),
    db: Session = Depends(get_db)
):
    """Active users, optionally filtered by role"""
    try:
        return users.get_users(db, skip=page.skip, limit=page.limit, role=role.value if role else None)
    except Exception as e:
        logger.error(f"Error getting users: {e}")
        raise InternalError("Failed to get users")
