"""Tests for support tickets and their admin handling."""
import pytest

from tests.conftest import auth_headers, notifications_for


async def _open_ticket(client, user, **overrides):
    body = {"subject": "Refund question", "message": "When will my refund arrive?", "type": "payment_issue"}
    body.update(overrides)
    return await client.post("/v1/support", json=body, headers=auth_headers(user))


@pytest.mark.asyncio
async def test_create_ticket(client, seeker_user):
    resp = await _open_ticket(client, seeker_user)
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "open"
    assert data["type"] == "payment_issue"
    assert data["name"] == "Sara Seeker"
    assert data["email"] == "sara@mail.com"


@pytest.mark.asyncio
async def test_create_ticket_invalid_type(client, seeker_user):
    resp = await _open_ticket(client, seeker_user, type="billing")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_my_tickets(client, seeker_user, provider_user):
    await _open_ticket(client, seeker_user)
    await _open_ticket(client, provider_user, subject="Other")

    resp = await client.get("/v1/support/my", headers=auth_headers(seeker_user))
    data = resp.json()["data"]
    assert len(data) == 1
    assert data[0]["subject"] == "Refund question"


@pytest.mark.asyncio
async def test_admin_handles_ticket(client, db, seeker_user, admin_user):
    ticket_id = (await _open_ticket(client, seeker_user)).json()["id"]

    resp = await client.get("/v1/admin/support?status=open", headers=auth_headers(admin_user))
    assert [t["id"] for t in resp.json()["data"]] == [ticket_id]

    resp = await client.post(
        f"/v1/admin/support/{ticket_id}/status", json={"status": "in_progress"}, headers=auth_headers(admin_user)
    )
    assert resp.json()["status"] == "in_progress"

    resp = await client.post(
        f"/v1/admin/support/{ticket_id}/status",
        json={"status": "closed", "admin_reply": "Refund sent today."},
        headers=auth_headers(admin_user),
    )
    data = resp.json()
    assert data["status"] == "closed"
    assert data["admin_reply"] == "Refund sent today."

    notes = await notifications_for(db, seeker_user)
    assert [n.type for n in notes] == ["support_in_progress", "support_closed_with_reply"]
    assert notes[0].link == "/contact"
    assert f"#{ticket_id[:8]}" in notes[0].body
    assert "Refund sent today." in notes[1].body

    # Closed tickets stay closed
    resp = await client.post(
        f"/v1/admin/support/{ticket_id}/status", json={"status": "in_progress"}, headers=auth_headers(admin_user)
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_close_without_reply(client, db, seeker_user, admin_user):
    ticket_id = (await _open_ticket(client, seeker_user)).json()["id"]
    resp = await client.post(
        f"/v1/admin/support/{ticket_id}/status", json={"status": "closed"}, headers=auth_headers(admin_user)
    )
    assert resp.json()["admin_reply"] is None

    notes = await notifications_for(db, seeker_user)
    assert notes[-1].type == "support_closed"
