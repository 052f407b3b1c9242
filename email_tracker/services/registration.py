import secrets
from sqlalchemy import select
from email_tracker.core.database import Database
from email_tracker.models.tracking import Email, Link
from email_tracker.schemas.tracking import EmailCreate, LinkCreate
import structlog

logger = structlog.get_logger()

EMAIL_ID_BYTES = 8
LINK_ID_BYTES = 6
MAX_ID_ATTEMPTS = 5


class EmailNotFoundError(LookupError):
    """Raised when a link is registered against an unknown email"""


class RegistrationService:
    """Issues tracking identifiers for emails and links"""

    def __init__(self, db: Database):
        self.db = db

    async def create_email(self, payload: EmailCreate) -> str:
        """Insert an Email row and return its id"""
        async with self.db.writer() as session:
            email_id = await self._unused_id(session, Email, EMAIL_ID_BYTES)
            session.add(Email(
                id=email_id,
                subject=payload.subject,
                recipient=payload.recipient,
                user_email=payload.user_email
            ))
            await session.commit()

        logger.info("email_registered", email_id=email_id)
        return email_id

    async def create_link(self, payload: LinkCreate) -> str:
        """
        Insert a Link row owned by an existing email and return its id

        Raises:
            EmailNotFoundError: if payload.email_id does not exist
        """
        async with self.db.writer() as session:
            owner = await session.scalar(select(Email.id).where(Email.id == payload.email_id))
            if owner is None:
                raise EmailNotFoundError(payload.email_id)

            link_id = await self._unused_id(session, Link, LINK_ID_BYTES)
            session.add(Link(
                id=link_id,
                email_id=payload.email_id,
                original_url=payload.original_url
            ))
            await session.commit()

        logger.info("link_registered", link_id=link_id, email_id=payload.email_id)
        return link_id

    @staticmethod
    async def _unused_id(session, model, nbytes: int) -> str:
        for _ in range(MAX_ID_ATTEMPTS):
            candidate = secrets.token_hex(nbytes)
            existing = await session.scalar(select(model.id).where(model.id == candidate))
            if existing is None:
                return candidate
        raise RuntimeError(f"Could not allocate a unique {model.__tablename__} id")
