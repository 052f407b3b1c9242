from datetime import datetime, time, timedelta, timezone
from typing import List, Dict, Any, Optional
from sqlalchemy import select, func
from email_tracker.core.database import Database
from email_tracker.models.tracking import Email, Open, Link, Click
import structlog

logger = structlog.get_logger()


class AnalyticsService:
    """Read-side queries over emails, opens, links and clicks"""

    def __init__(self, db: Database):
        self.db = db

    async def list_emails(self, user_email: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Newest emails of one owner with open/click counters"""
        open_count = (
            select(func.count(Open.id))
            .where(Open.email_id == Email.id)
            .correlate(Email)
            .scalar_subquery()
        )
        last_opened = (
            select(func.max(Open.opened_at))
            .where(Open.email_id == Email.id)
            .correlate(Email)
            .scalar_subquery()
        )
        click_count = (
            select(func.count(Click.id))
            .join(Link, Click.link_id == Link.id)
            .where(Link.email_id == Email.id)
            .correlate(Email)
            .scalar_subquery()
        )

        query = (
            select(
                Email.id,
                Email.subject,
                Email.recipient,
                Email.sent_at,
                open_count.label("open_count"),
                last_opened.label("last_opened"),
                click_count.label("click_count"),
            )
            .where(Email.user_email == user_email)
            .order_by(Email.sent_at.desc(), Email.id)
            .limit(limit)
        )

        async with self.db.session() as session:
            result = await session.execute(query)
            rows = result.mappings().all()

        logger.info("email_listing_executed", user_email=user_email, count=len(rows))
        return [dict(row) for row in rows]

    async def get_email_detail(self, email_id: str) -> Optional[Dict[str, Any]]:
        """Email row with its opens, links and clicks, or None if unknown"""
        async with self.db.session() as session:
            email = await session.get(Email, email_id)
            if email is None:
                return None

            opens_result = await session.execute(
                select(Open.opened_at, Open.ip_address, Open.user_agent)
                .where(Open.email_id == email_id)
                .order_by(Open.opened_at.desc(), Open.id.desc())
            )
            opens = [dict(row) for row in opens_result.mappings()]

            link_clicks = (
                select(func.count(Click.id))
                .where(Click.link_id == Link.id)
                .correlate(Link)
                .scalar_subquery()
            )
            links_result = await session.execute(
                select(Link.id, Link.original_url, link_clicks.label("click_count"))
                .where(Link.email_id == email_id)
                .order_by(Link.created_at, Link.id)
            )
            links = [dict(row) for row in links_result.mappings()]

            clicks_result = await session.execute(
                select(Click.clicked_at, Click.ip_address, Click.user_agent, Link.original_url)
                .join(Link, Click.link_id == Link.id)
                .where(Link.email_id == email_id)
                .order_by(Click.clicked_at.desc(), Click.id.desc())
            )
            clicks = [dict(row) for row in clicks_result.mappings()]

        logger.info("email_detail_executed", email_id=email_id)

        return {
            "id": email.id,
            "subject": email.subject,
            "recipient": email.recipient,
            "sent_at": email.sent_at,
            "user_email": email.user_email,
            "opens": opens,
            "links": links,
            "clicks": clicks,
            "stats": {
                "totalOpens": len(opens),
                "uniqueOpens": len({o["ip_address"] for o in opens}),
                "totalClicks": len(clicks),
                "uniqueClicks": len({c["ip_address"] for c in clicks}),
            }
        }

    async def get_user_stats(self, user_email: str, trend_days: int = 7) -> Dict[str, Any]:
        """Totals for one owner plus sparse per-day opens over the trailing window"""
        today = datetime.now(timezone.utc).date()
        since = datetime.combine(today - timedelta(days=trend_days - 1), time.min, tzinfo=timezone.utc)

        emails_query = select(func.count(Email.id)).where(Email.user_email == user_email)
        opens_query = (
            select(func.count(Open.id))
            .join(Email, Open.email_id == Email.id)
            .where(Email.user_email == user_email)
        )
        clicks_query = (
            select(func.count(Click.id))
            .join(Link, Click.link_id == Link.id)
            .join(Email, Link.email_id == Email.id)
            .where(Email.user_email == user_email)
        )

        day = func.date(Open.opened_at)
        daily_query = (
            select(day.label("day"), func.count(Open.id).label("opens"))
            .join(Email, Open.email_id == Email.id)
            .where(Email.user_email == user_email, Open.opened_at >= since)
            .group_by(day)
            .order_by(day)
        )

        async with self.db.session() as session:
            total_emails = await session.scalar(emails_query) or 0
            total_opens = await session.scalar(opens_query) or 0
            total_clicks = await session.scalar(clicks_query) or 0
            daily_result = await session.execute(daily_query)
            daily_opens = [
                {"date": str(row.day), "opens": row.opens}
                for row in daily_result
            ]

        logger.info("stats_query_executed", user_email=user_email, trend_days=trend_days)

        return {
            "total_emails": total_emails,
            "total_opens": total_opens,
            "total_clicks": total_clicks,
            "daily_opens": daily_opens
        }
