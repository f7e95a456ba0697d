# create_admin.py
from sqlalchemy.orm import Session
from typing import Optional
import logging
import os

from . import models
from .auth import hash_password
from .database import Base, SessionLocal, engine

logger = logging.getLogger(__name__)

ADMIN_EMAIL = os.environ.get('ADMIN_EMAIL', 'admin@pharmacy-store.com').lower()
ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', '')
ADMIN_NAME = os.environ.get('ADMIN_NAME', 'Store Administrator')

def ensure_admin_exists(db: Session) -> Optional[models.User]:
    """Create the first admin when none exists. Returns the new user, or None if nothing was done."""
    if db.query(models.User).filter(models.User.role == "admin").first():
        return None

    if not ADMIN_PASSWORD:
        logger.warning("No admin account exists and ADMIN_PASSWORD is not set; skipping admin seed")
        return None

    existing = db.query(models.User).filter(models.User.email == ADMIN_EMAIL).first()
    if existing:
        # promote the account that already owns the configured email
        existing.role = "admin"
        existing.is_blocked = False
        db.commit()
        logger.info(f"Promoted {ADMIN_EMAIL} to admin")
        return existing

    admin = models.User(
        email=ADMIN_EMAIL,
        name=ADMIN_NAME,
        password=hash_password(ADMIN_PASSWORD),
        role="admin"
    )
    db.add(admin)
    db.commit()
    db.refresh(admin)
    logger.info(f"Default admin user created: {ADMIN_EMAIL}")
    return admin

def main():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        admin = ensure_admin_exists(db)
        if admin:
            print("✅ Admin ready!")
            print(f"📧 Email: {admin.email}")
        else:
            print("✅ Nothing to do (an admin already exists or ADMIN_PASSWORD is unset)")
    finally:
        db.close()

if __name__ == "__main__":
    main()
