# POST /api/emails, POST /api/links, GET /api/emails[/{email_id}]
#
# The userEmail query parameter is the only tenant boundary. There is no
# authentication, so any caller who knows an owner's address can read that
# owner's emails and stats.

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from typing import List
from email_tracker.core.config import Settings, get_settings
from email_tracker.core.database import Database, get_database
from email_tracker.schemas.tracking import (
    EmailCreate,
    LinkCreate,
    EmailCreateResponse,
    LinkCreateResponse
)
from email_tracker.schemas.analytics import EmailSummary, EmailDetailResponse
from email_tracker.services.registration import RegistrationService, EmailNotFoundError
from email_tracker.services.analytics import AnalyticsService
import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/api", tags=["emails"])


def public_base_url(request: Request, settings: Settings) -> str:
    """Configured public URL, else the scheme and host the request came in on"""
    if settings.base_url:
        return settings.base_url.rstrip("/")
    return str(request.base_url).rstrip("/")


@router.post("/emails", response_model=EmailCreateResponse)
async def register_email(
        payload: EmailCreate,
        request: Request,
        db: Database = Depends(get_database),
        settings: Settings = Depends(get_settings)
):
    """
    Register a tracked email.

    - **subject**, **recipient**, **userEmail**: required, non-blank

    Returns the email id and the pixel URL to embed in the message body.
    """
    try:
        email_id = await RegistrationService(db).create_email(payload)
    except Exception as e:
        logger.error("email_registration_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create email"
        )

    return EmailCreateResponse(
        emailId=email_id,
        trackingPixel=f"{public_base_url(request, settings)}/t/{email_id}.png"
    )


@router.post("/links", response_model=LinkCreateResponse)
async def register_link(
        payload: LinkCreate,
        request: Request,
        db: Database = Depends(get_database),
        settings: Settings = Depends(get_settings)
):
    """
    Register a tracked link for an existing email.

    - **emailId**: id returned by POST /api/emails
    - **originalUrl**: absolute http(s) URL to redirect to
    """
    try:
        link_id = await RegistrationService(db).create_link(payload)
    except EmailNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Email not found"
        )
    except Exception as e:
        logger.error("link_registration_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create link"
        )

    return LinkCreateResponse(
        linkId=link_id,
        trackedUrl=f"{public_base_url(request, settings)}/c/{link_id}"
    )


@router.get("/emails", response_model=List[EmailSummary])
async def list_emails(
        user_email: str = Query(..., alias="userEmail", min_length=1, description="Owner address"),
        db: Database = Depends(get_database),
        settings: Settings = Depends(get_settings)
):
    """Newest emails of an owner with open count, last open and click count"""
    if not user_email.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="userEmail is required")

    try:
        return await AnalyticsService(db).list_emails(user_email, limit=settings.listing_limit)
    except Exception as e:
        logger.error("email_listing_failed", error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch emails"
        )


@router.get("/emails/{email_id}", response_model=EmailDetailResponse)
async def get_email(
        email_id: str,
        db: Database = Depends(get_database)
):
    """Opens, links, clicks and derived stats for one email"""
    try:
        detail = await AnalyticsService(db).get_email_detail(email_id)
    except Exception as e:
        logger.error("email_detail_failed", email_id=email_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to fetch email details"
        )

    if detail is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Email not found")

    return detail
