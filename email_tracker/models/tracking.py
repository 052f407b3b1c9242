# SQLAlchemy models

from datetime import datetime, timezone
from sqlalchemy import Column, String, Integer, Text, DateTime, ForeignKey, Index
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetime on every backend.

    SQLite has no offset storage and hands back naive values, which are UTC
    because everything is normalized on the way in.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Email(Base):
    __tablename__ = "emails"

    id = Column(String(32), primary_key=True)
    subject = Column(Text, nullable=False)
    recipient = Column(Text, nullable=False)
    sent_at = Column(UTCDateTime, nullable=False, default=utcnow)
    user_email = Column(String(320), nullable=False)

    __table_args__ = (
        # Listing and stats filter by owner, newest first
        Index('idx_emails_user_sent', 'user_email', 'sent_at'),
    )


class Open(Base):
    __tablename__ = "opens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email_id = Column(String(32), ForeignKey("emails.id"), nullable=False)
    opened_at = Column(UTCDateTime, nullable=False, default=utcnow)
    ip_address = Column(String(255))
    user_agent = Column(Text)

    __table_args__ = (
        Index('idx_opens_email_opened', 'email_id', 'opened_at'),
    )


class Link(Base):
    __tablename__ = "links"

    id = Column(String(32), primary_key=True)
    email_id = Column(String(32), ForeignKey("emails.id"), nullable=False, index=True)
    original_url = Column(Text, nullable=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)


class Click(Base):
    __tablename__ = "clicks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    link_id = Column(String(32), ForeignKey("links.id"), nullable=False)
    clicked_at = Column(UTCDateTime, nullable=False, default=utcnow)
    ip_address = Column(String(255))
    user_agent = Column(Text)

    __table_args__ = (
        Index('idx_clicks_link_clicked', 'link_id', 'clicked_at'),
    )
