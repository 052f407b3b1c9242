# GET /t/{email_id}.png, GET /c/{link_id}

import base64
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import PlainTextResponse, RedirectResponse, Response
from email_tracker.core.database import Database, get_database
from email_tracker.services.tracking import TrackingService
import structlog

logger = structlog.get_logger()
router = APIRouter(tags=["tracking"])

# 1x1 transparent PNG
TRACKING_PIXEL = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNk+M9QDwADhgGAWjR9awAAAABJRU5ErkJggg=="
)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}

UNKNOWN_USER_AGENT = "Unknown"


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop if present, else the peer address"""
    forwarded = request.headers.get("X-Forwarded-For", "")
    first_hop = forwarded.split(",")[0].strip()
    if first_hop:
        return first_hop
    return request.client.host if request.client else "unknown"


def client_user_agent(request: Request) -> str:
    return request.headers.get("User-Agent") or UNKNOWN_USER_AGENT


@router.get("/t/{email_id}.png", include_in_schema=False)
async def tracking_pixel(
        email_id: str,
        request: Request,
        db: Database = Depends(get_database)
):
    """Record an open and always serve the pixel"""
    service = TrackingService(db)
    await service.record_open(email_id, client_ip(request), client_user_agent(request))

    return Response(content=TRACKING_PIXEL, media_type="image/png", headers=NO_CACHE_HEADERS)


@router.get("/c/{link_id}", include_in_schema=False)
async def tracked_link(
        link_id: str,
        request: Request,
        db: Database = Depends(get_database)
):
    """
    Record a click and redirect to the link's original URL.

    Unknown links get a 404 and nothing is recorded. A failed click write
    never blocks the redirect.
    """
    service = TrackingService(db)

    try:
        original_url = await service.resolve_link(link_id)
    except Exception as e:
        logger.error("link_lookup_failed", link_id=link_id, error=str(e))
        return PlainTextResponse("Error processing request", status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

    if original_url is None:
        return PlainTextResponse("Link not found", status_code=status.HTTP_404_NOT_FOUND)

    await service.record_click(link_id, client_ip(request), client_user_agent(request))

    return RedirectResponse(original_url, status_code=status.HTTP_302_FOUND)
