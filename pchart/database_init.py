"""
Database initialization.

Creates tables and seeds the data a fresh install needs to be usable:
the configured operation sequence and a first admin account.
"""
import logging

from sqlalchemy import select, func

from pchart.config import settings
from pchart.core.security import get_password_hash
from pchart.database import async_session_factory, init_db
from pchart.models.user import User, UserRole
from pchart.services.operation_step_service import OperationStepService


logger = logging.getLogger(__name__)


async def seed_admin_user() -> bool:
    """Create FIRST_ADMIN_USERNAME when the users table is empty."""
    async with async_session_factory() as session:
        user_count = (await session.execute(select(func.count(User.id)))).scalar() or 0
        if user_count:
            logger.info(f"Found {user_count} existing users. Skipping admin seed.")
            return False

        session.add(User(
            username=settings.FIRST_ADMIN_USERNAME,
            password_hash=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
            name="Administrator",
            role=UserRole.ADMIN.value,
            is_active=True,
        ))
        await session.commit()
        logger.info(f"Created admin user: {settings.FIRST_ADMIN_USERNAME}")
        return True


async def seed_operation_steps() -> int:
    async with async_session_factory() as session:
        return await OperationStepService(session).seed_defaults()


async def startup_initialization() -> None:
    """Run at application startup."""
    logger.info("Initializing database...")
    await init_db()
    await seed_operation_steps()
    await seed_admin_user()
    logger.info("Database initialization complete")
