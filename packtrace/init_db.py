"""
Initialize the database with default data.
This creates an admin user if one doesn't exist.
"""
from sqlalchemy.orm import Session
import logging
from . import database, schemas
from .config import settings
from .crud.users import users

# Set up logging
logger = logging.getLogger(__name__)

ADMIN_USERNAME = "admin"

def init_admin_user(db: Session):
    """
    Create an admin user if one doesn't exist.
    """
    admin = users.get_user_by_username(db, ADMIN_USERNAME)

    if admin:
        logger.info(f"Admin user '{ADMIN_USERNAME}' already exists")
        return admin

    logger.info(f"Creating admin user '{ADMIN_USERNAME}'")
    admin_user = schemas.UserMasterCreate(
        name="Administrator",
        username=ADMIN_USERNAME,
        password="admin123",  # Change after first login
        role=schemas.UserRole.ADMIN
    )

    with database.atomic(db):
        admin = users.create_user(db, user=admin_user)
    db.refresh(admin)
    return admin

def init_db():
    """
    Initialize the database with default data.
    """
    if database.SessionLocal is None:
        logger.error("Database connection not available")
        return

    if not settings.SEED_ADMIN:
        logger.info("SEED_ADMIN is off, skipping default admin user")
        return

    db = database.SessionLocal()
    try:
        admin = init_admin_user(db)
        logger.info(f"Database initialized with admin user: {admin.username}")
    except Exception as e:
        db.rollback()
        logger.error(f"Error initializing database: {e}")
    finally:
        db.close()
