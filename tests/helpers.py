# Shared request helpers for the integration tests


async def register_email(client, user_email="sender@example.com", subject="Hello", recipient="to@example.com"):
    response = await client.post("/api/emails", json={
        "subject": subject,
        "recipient": recipient,
        "userEmail": user_email
    })
    assert response.status_code == 200
    return response.json()


async def register_link(client, email_id, original_url="https://example.com"):
    response = await client.post("/api/links", json={"emailId": email_id, "originalUrl": original_url})
    assert response.status_code == 200
    return response.json()
