from typing import Optional
from sqlalchemy import select
from email_tracker.core.database import Database
from email_tracker.models.tracking import Open, Link, Click
import structlog

logger = structlog.get_logger()


class TrackingService:
    """
    Records opens and clicks.

    Event writes are best-effort: failures are logged and swallowed so the
    pixel and the redirect are always served.
    """

    def __init__(self, db: Database):
        self.db = db

    async def record_open(self, email_id: str, ip_address: str, user_agent: str) -> bool:
        try:
            async with self.db.writer() as session:
                session.add(Open(email_id=email_id, ip_address=ip_address, user_agent=user_agent))
                await session.commit()
        except Exception as e:
            logger.warning("open_record_failed", email_id=email_id, error=str(e))
            return False

        logger.info("open_recorded", email_id=email_id)
        return True

    async def resolve_link(self, link_id: str) -> Optional[str]:
        """Return the redirect target for a link, or None if unknown"""
        async with self.db.session() as session:
            return await session.scalar(select(Link.original_url).where(Link.id == link_id))

    async def record_click(self, link_id: str, ip_address: str, user_agent: str) -> bool:
        try:
            async with self.db.writer() as session:
                session.add(Click(link_id=link_id, ip_address=ip_address, user_agent=user_agent))
                await session.commit()
        except Exception as e:
            logger.warning("click_record_failed", link_id=link_id, error=str(e))
            return False

        logger.info("click_recorded", link_id=link_id)
        return True
