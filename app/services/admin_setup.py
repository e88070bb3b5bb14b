import logging

from sqlmodel import Session, select

from app.config import settings
from app.constants.order_status import ROLE_ADMIN
from app.models.user import User
from app.utils.hash import hash_password

logger = logging.getLogger(__name__)


def ensure_admin_user(session: Session):
    """Create or refresh the bootstrap admin from ADMIN_EMAIL / ADMIN_PASSWORD."""
    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD:
        logger.info("Admin email or password not configured, skipping admin setup")
        return None

    email = settings.ADMIN_EMAIL.strip().lower()
    admin = session.exec(select(User).where(User.email == email)).first()

    if admin is None:
        admin = User(
            name=settings.ADMIN_NAME,
            email=email,
            password=hash_password(settings.ADMIN_PASSWORD),
            role=ROLE_ADMIN,
        )
        logger.info(f"Admin user created: {email}")
    else:
        # Configured password always wins
        admin.role = ROLE_ADMIN
        admin.can_login = True
        admin.password = hash_password(settings.ADMIN_PASSWORD)
        logger.info(f"Admin user refreshed: {email}")

    session.add(admin)
    session.commit()
    session.refresh(admin)
    return admin
