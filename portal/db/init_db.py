import asyncio
import logging

from sqlalchemy import select

from portal.core.security import get_password_hash
from portal.core.settings import settings
from portal.db.session import AsyncSessionLocal
from portal.models import ApplicantRecord, Identity

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Seed the administrator account when credentials are configured."""
    if not settings.seed_admin_email or not settings.seed_admin_password:
        logger.info("No seed administrator configured")
        return

    email = settings.seed_admin_email.lower()
    async with AsyncSessionLocal() as session:
        result = await session.execute(select(Identity).where(Identity.email == email))
        identity = result.scalar_one_or_none()
        if identity is None:
            identity = Identity(
                email=email,
                display_name=settings.seed_admin_display_name,
                hashed_password=get_password_hash(settings.seed_admin_password),
                provider="password",
                token_version=0,
                is_active=True,
            )
            session.add(identity)
            await session.flush()
            logger.info("Created seed administrator %s", email)

        record = await session.get(ApplicantRecord, identity.id)
        if record is None:
            record = ApplicantRecord(
                uid=identity.id,
                email=email,
                display_name=identity.display_name,
                application_status="incomplete",
            )
        # role is only ever granted here, outside any applicant-facing path
        record.role = "admin"
        session.add(record)
        await session.commit()


if __name__ == "__main__":
    asyncio.run(init_db())
