from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class EmailSummary(BaseModel):
    """One row of the email listing"""
    id: str
    subject: str
    recipient: str
    sent_at: datetime
    open_count: int
    last_opened: Optional[datetime] = None
    click_count: int


class OpenEntry(BaseModel):
    opened_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class LinkEntry(BaseModel):
    id: str
    original_url: str
    click_count: int


class ClickEntry(BaseModel):
    clicked_at: datetime
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    original_url: str


class EngagementStats(BaseModel):
    """Totals and distinct-IP counts for a single email"""
    totalOpens: int
    uniqueOpens: int
    totalClicks: int
    uniqueClicks: int


class EmailDetailResponse(BaseModel):
    id: str
    subject: str
    recipient: str
    sent_at: datetime
    user_email: str
    opens: List[OpenEntry]
    links: List[LinkEntry]
    clicks: List[ClickEntry]
    stats: EngagementStats


class DailyOpens(BaseModel):
    date: str
    opens: int


class UserStatsResponse(BaseModel):
    """Aggregate stats for one owner"""
    total_emails: int
    total_opens: int
    total_clicks: int
    daily_opens: List[DailyOpens]
