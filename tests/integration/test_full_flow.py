import asyncio
import pytest
from httpx import AsyncClient, ASGITransport
from email_tracker.main import create_app
from tests.helpers import register_email, register_link


@pytest.mark.asyncio
async def test_health_check(client):
    """Test health endpoint"""
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_register_email_returns_pixel_url(client):
    data = await register_email(client)

    assert len(data["emailId"]) == 16
    assert data["trackingPixel"] == f"http://test/t/{data['emailId']}.png"


@pytest.mark.asyncio
async def test_registered_ids_are_unique(client):
    email_ids = {(await register_email(client))["emailId"] for _ in range(20)}
    assert len(email_ids) == 20

    link_ids = set()
    for email_id in email_ids:
        link = await register_link(client, email_id)
        assert link["trackedUrl"] == f"http://test/c/{link['linkId']}"
        assert len(link["linkId"]) == 12
        link_ids.add(link["linkId"])
    assert len(link_ids) == 20


@pytest.mark.asyncio
async def test_configured_base_url_is_used(test_settings, client):
    test_settings.base_url = "https://track.example.org/"

    data = await register_email(client)

    assert data["trackingPixel"] == f"https://track.example.org/t/{data['emailId']}.png"


@pytest.mark.asyncio
async def test_open_and_click_scenario(client):
    """Register, open once, click twice from two IPs, then read the detail"""
    email = await register_email(client, subject="Quarterly update")
    link = await register_link(client, email["emailId"], "https://example.com")

    response = await client.get(f"/t/{email['emailId']}.png", headers={"User-Agent": "MailClient/1.0"})
    assert response.status_code == 200

    for ip in ("203.0.113.1", "203.0.113.2"):
        response = await client.get(f"/c/{link['linkId']}", headers={"X-Forwarded-For": ip})
        assert response.status_code == 302
        assert response.headers["location"] == "https://example.com"

    response = await client.get(f"/api/emails/{email['emailId']}")
    assert response.status_code == 200
    detail = response.json()

    assert detail["subject"] == "Quarterly update"
    assert detail["user_email"] == "sender@example.com"
    assert detail["stats"] == {
        "totalOpens": 1,
        "uniqueOpens": 1,
        "totalClicks": 2,
        "uniqueClicks": 2
    }
    assert detail["opens"][0]["user_agent"] == "MailClient/1.0"
    assert detail["links"] == [
        {"id": link["linkId"], "original_url": "https://example.com", "click_count": 2}
    ]
    # Newest click first
    assert [c["ip_address"] for c in detail["clicks"]] == ["203.0.113.2", "203.0.113.1"]
    assert all(c["original_url"] == "https://example.com" for c in detail["clicks"])


@pytest.mark.asyncio
async def test_unique_counts_never_exceed_totals(client):
    email = await register_email(client)
    link = await register_link(client, email["emailId"])

    for ip in ("198.51.100.7", "198.51.100.7", "198.51.100.8"):
        await client.get(f"/t/{email['emailId']}.png", headers={"X-Forwarded-For": ip})
        await client.get(f"/c/{link['linkId']}", headers={"X-Forwarded-For": ip})

    stats = (await client.get(f"/api/emails/{email['emailId']}")).json()["stats"]

    assert stats["totalOpens"] == 3
    assert stats["uniqueOpens"] == 2
    assert stats["totalClicks"] == 3
    assert stats["uniqueClicks"] == 2


@pytest.mark.asyncio
async def test_email_detail_unknown_id(client):
    response = await client.get("/api/emails/doesnotexist")
    assert response.status_code == 404
    assert response.json()["detail"] == "Email not found"


@pytest.mark.asyncio
async def test_listing_is_scoped_and_newest_first(client):
    first = await register_email(client, subject="first")
    second = await register_email(client, subject="second")
    await register_email(client, user_email="someone-else@example.com")

    await client.get(f"/t/{first['emailId']}.png")
    await client.get(f"/t/{first['emailId']}.png")
    link = await register_link(client, second["emailId"])
    await client.get(f"/c/{link['linkId']}")

    response = await client.get("/api/emails", params={"userEmail": "sender@example.com"})
    assert response.status_code == 200
    emails = response.json()

    assert [e["id"] for e in emails] == [second["emailId"], first["emailId"]]
    assert emails[0]["open_count"] == 0
    assert emails[0]["last_opened"] is None
    assert emails[0]["click_count"] == 1
    assert emails[1]["open_count"] == 2
    assert emails[1]["last_opened"] is not None
    assert emails[1]["click_count"] == 0


@pytest.mark.asyncio
async def test_stats_match_listing_totals(client):
    for n in range(3):
        email = await register_email(client, subject=f"mail {n}")
        link = await register_link(client, email["emailId"], f"https://example.com/{n}")
        for _ in range(n):
            await client.get(f"/t/{email['emailId']}.png")
        for _ in range(n + 1):
            await client.get(f"/c/{link['linkId']}")

    emails = (await client.get("/api/emails", params={"userEmail": "sender@example.com"})).json()
    response = await client.get("/api/stats", params={"userEmail": "sender@example.com"})
    assert response.status_code == 200
    stats = response.json()

    assert stats["total_emails"] == len(emails) == 3
    assert stats["total_opens"] == sum(e["open_count"] for e in emails) == 3
    assert stats["total_clicks"] == sum(e["click_count"] for e in emails) == 6


@pytest.mark.asyncio
async def test_stats_for_unknown_owner_are_zero(client):
    response = await client.get("/api/stats", params={"userEmail": "nobody@example.com"})
    assert response.status_code == 200
    assert response.json() == {
        "total_emails": 0,
        "total_opens": 0,
        "total_clicks": 0,
        "daily_opens": []
    }


@pytest.mark.asyncio
async def test_validation_errors(client):
    """Test input validation"""
    # Missing userEmail
    response = await client.post("/api/emails", json={"subject": "s", "recipient": "r"})
    assert response.status_code == 400

    # Blank subject
    response = await client.post("/api/emails", json={"subject": "  ", "recipient": "r", "userEmail": "u"})
    assert response.status_code == 400

    # Not an absolute http(s) URL
    email = await register_email(client)
    response = await client.post("/api/links", json={"emailId": email["emailId"], "originalUrl": "javascript:alert(1)"})
    assert response.status_code == 400

    # Owner filter is required
    response = await client.get("/api/emails")
    assert response.status_code == 400
    response = await client.get("/api/stats", params={"userEmail": "   "})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_link_for_unknown_email_is_rejected(client):
    response = await client.post("/api/links", json={"emailId": "0123456789abcdef", "originalUrl": "https://example.com"})
    assert response.status_code == 404
    assert response.json()["detail"] == "Email not found"


@pytest.mark.asyncio
async def test_rate_limit_headers(client):
    """Test that rate limit headers are present on API routes only"""
    response = await client.get("/api/stats", params={"userEmail": "sender@example.com"})
    assert response.status_code == 200
    assert "X-RateLimit-Limit" in response.headers
    assert "X-RateLimit-Remaining" in response.headers
    assert "X-RateLimit-Reset" in response.headers

    response = await client.get("/t/anything.png")
    assert "X-RateLimit-Limit" not in response.headers


@pytest.mark.asyncio
async def test_storage_failure_is_generic_500(client, database, monkeypatch):
    def broken_session():
        raise RuntimeError("connection refused to 10.0.0.5")

    monkeypatch.setattr(database, "session", broken_session)

    response = await client.get("/api/stats", params={"userEmail": "sender@example.com"})
    assert response.status_code == 500
    assert response.json() == {"detail": "Failed to fetch stats"}

    response = await client.get("/api/emails/abc")
    assert response.status_code == 500
    assert "10.0.0.5" not in response.text


@pytest.mark.asyncio
async def test_timestamps_are_returned_as_utc(client):
    email = await register_email(client)
    link = await register_link(client, email["emailId"])
    await client.get(f"/t/{email['emailId']}.png")
    await client.get(f"/c/{link['linkId']}")

    def is_utc(value):
        return value.endswith("Z") or value.endswith("+00:00")

    detail = (await client.get(f"/api/emails/{email['emailId']}")).json()
    assert is_utc(detail["sent_at"])
    assert is_utc(detail["opens"][0]["opened_at"])
    assert is_utc(detail["clicks"][0]["clicked_at"])

    listing = (await client.get("/api/emails", params={"userEmail": "sender@example.com"})).json()
    assert is_utc(listing[0]["sent_at"])
    assert is_utc(listing[0]["last_opened"])


@pytest.mark.asyncio
async def test_long_subject_is_accepted(client):
    subject = "x" * 5000

    email = await register_email(client, subject=subject, recipient="a@example.com, " * 300)

    detail = (await client.get(f"/api/emails/{email['emailId']}")).json()
    assert detail["subject"] == subject


@pytest.mark.asyncio
async def test_rate_limit_exhaustion_leaves_tracking_untouched(test_settings):
    settings = test_settings.model_copy(update={"rate_limit_requests": 2})
    app = create_app(settings)

    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            email = await register_email(client)
            link = await register_link(client, email["emailId"])

            response = await client.get("/api/stats", params={"userEmail": "sender@example.com"})
            assert response.status_code == 429
            assert response.headers["Retry-After"] == "60"
            assert response.headers["X-RateLimit-Remaining"] == "0"

            pixels = [(await client.get(f"/t/{email['emailId']}.png")).status_code for _ in range(5)]
            clicks = [(await client.get(f"/c/{link['linkId']}")).status_code for _ in range(3)]
            assert pixels == [200] * 5
            assert clicks == [302] * 3
            assert (await client.get("/health")).status_code == 200


@pytest.mark.asyncio
async def test_concurrent_tracking_writes_are_all_recorded(client):
    email = await register_email(client)
    link = await register_link(client, email["emailId"])
    hits = 40

    responses = await asyncio.gather(
        *[client.get(f"/t/{email['emailId']}.png", headers={"X-Forwarded-For": f"192.0.2.{i}"}) for i in range(hits)],
        *[client.get(f"/c/{link['linkId']}", headers={"X-Forwarded-For": f"192.0.2.{i}"}) for i in range(hits)],
        *[client.get("/api/emails", params={"userEmail": "sender@example.com"}) for _ in range(5)],
    )

    assert [r.status_code for r in responses[:hits]] == [200] * hits
    assert [r.status_code for r in responses[hits:2 * hits]] == [302] * hits
    assert all(r.status_code == 200 for r in responses[2 * hits:])

    stats = (await client.get(f"/api/emails/{email['emailId']}")).json()["stats"]
    assert stats == {
        "totalOpens": hits,
        "uniqueOpens": hits,
        "totalClicks": hits,
        "uniqueClicks": hits
    }
