from sqlalchemy.orm import Session
from typing import List, Optional
from datetime import datetime
import hashlib

from .base import CRUDBase
from .. import models, schemas
from ..exceptions import ConflictError


def hash_password(password: str) -> str:
    return hashlib.sha256(password.encode()).hexdigest()


class CRUDUser(CRUDBase[models.UserMaster, schemas.UserMasterCreate, schemas.UserMasterUpdate]):
    def get_users(
        self,
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        role: Optional[str] = None,
        status: str = "active"
    ) -> List[models.UserMaster]:
        """Get users with filtering by role and status"""
        query = db.query(models.UserMaster).filter(models.UserMaster.status == status)

        if role:
            query = query.filter(models.UserMaster.role == role)

        return query.order_by(models.UserMaster.created_at.desc()).offset(skip).limit(limit).all()

    def get_user_by_username(self, db: Session, username: str) -> Optional[models.UserMaster]:
        return db.query(models.UserMaster).filter(models.UserMaster.username == username).first()

    def create_user(self, db: Session, *, user: schemas.UserMasterCreate) -> models.UserMaster:
        """Create new user with hashed password"""
        if self.get_user_by_username(db, user.username):
            raise ConflictError(f"Username '{user.username}' is already taken", username=user.username)

        db_user = models.UserMaster(
            name=user.name,
            username=user.username,
            password_hash=hash_password(user.password),
            role=user.role.value,
        )
        db.add(db_user)
        db.flush()
        return db_user

    def authenticate_user(self, db: Session, username: str, password: str) -> Optional[models.UserMaster]:
        """Authenticate user login"""
        user = self.get_user_by_username(db, username)
        if not user or user.status != models.RecordStatus.ACTIVE.value:
            return None

        if hash_password(password) == user.password_hash:
            user.last_login = datetime.utcnow()
            db.flush()
            return user
        return None


users = CRUDUser(models.UserMaster)
