"""Tests for chats endpoints."""
import pytest

from tests.conftest import auth_headers, make_user


@pytest.mark.asyncio
async def test_create_chat(client, seeker_user, provider_user):
    resp = await client.post(
        "/v1/chats",
        json={"participant_id": str(provider_user.id)},
        headers=auth_headers(seeker_user),
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["participant"]["name"] == "Omar Plumber"
    assert data["participant"]["role"] == "provider"
    assert data["created"] is True


@pytest.mark.asyncio
async def test_create_chat_duplicate_returns_existing(client, seeker_user, provider_user):
    resp1 = await client.post(
        "/v1/chats",
        json={"participant_id": str(provider_user.id)},
        headers=auth_headers(seeker_user),
    )
    # Same pair from the other side
    resp2 = await client.post(
        "/v1/chats",
        json={"participant_id": str(seeker_user.id)},
        headers=auth_headers(provider_user),
    )
    assert resp1.json()["id"] == resp2.json()["id"]
    assert resp2.json()["created"] is False


@pytest.mark.asyncio
async def test_create_chat_with_self(client, seeker_user):
    resp = await client.post(
        "/v1/chats",
        json={"participant_id": str(seeker_user.id)},
        headers=auth_headers(seeker_user),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_new_chat_unread_counters(client, seeker_user, provider_user, chat):
    resp = await client.get("/v1/chats", headers=auth_headers(seeker_user))
    assert resp.json()["data"][0]["unread_count"] == 0

    resp = await client.get("/v1/chats", headers=auth_headers(provider_user))
    data = resp.json()["data"]
    assert len(data) == 1
    assert data[0]["unread_count"] == 1
    assert data[0]["participant"]["name"] == "Sara Seeker"


@pytest.mark.asyncio
async def test_send_message(client, seeker_user, provider_user, chat):
    resp = await client.post(
        f"/v1/chats/{chat.id}/messages",
        json={"content": "Hello, are you free tomorrow?"},
        headers=auth_headers(seeker_user),
    )
    assert resp.status_code == 201
    assert resp.json()["content"] == "Hello, are you free tomorrow?"
    assert resp.json()["sender_id"] == str(seeker_user.id)

    resp = await client.get("/v1/chats", headers=auth_headers(provider_user))
    item = resp.json()["data"][0]
    assert item["last_message"] == "Hello, are you free tomorrow?"
    assert item["unread_count"] == 2


@pytest.mark.asyncio
async def test_send_empty_message(client, seeker_user, chat):
    resp = await client.post(
        f"/v1/chats/{chat.id}/messages", json={"content": "   "}, headers=auth_headers(seeker_user)
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_media_message_preview(client, seeker_user, chat):
    await client.post(
        f"/v1/chats/{chat.id}/messages",
        json={"type": "image", "content": "/uploads/chat/photo.jpg"},
        headers=auth_headers(seeker_user),
    )
    resp = await client.get("/v1/chats", headers=auth_headers(seeker_user))
    assert resp.json()["data"][0]["last_message"] == "📷 Image"


@pytest.mark.asyncio
async def test_get_messages(client, seeker_user, provider_user, chat):
    for text in ("first", "second", "third"):
        await client.post(f"/v1/chats/{chat.id}/messages", json={"content": text}, headers=auth_headers(seeker_user))

    resp = await client.get(f"/v1/chats/{chat.id}/messages", headers=auth_headers(provider_user))
    assert resp.status_code == 200
    data = resp.json()
    assert [m["content"] for m in data["data"]] == ["first", "second", "third"]
    assert data["has_more"] is False

    resp = await client.get(f"/v1/chats/{chat.id}/messages?limit=2", headers=auth_headers(provider_user))
    data = resp.json()
    assert [m["content"] for m in data["data"]] == ["second", "third"]
    assert data["has_more"] is True

    cursor = data["data"][0]["created_at"]
    resp = await client.get(
        f"/v1/chats/{chat.id}/messages", params={"before": cursor}, headers=auth_headers(provider_user)
    )
    assert [m["content"] for m in resp.json()["data"]] == ["first"]


@pytest.mark.asyncio
async def test_chat_hidden_from_outsiders(client, db, chat):
    outsider = await make_user(db, "Nosy", "nosy@mail.com", "seeker")
    resp = await client.get(f"/v1/chats/{chat.id}/messages", headers=auth_headers(outsider))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_admin_can_read_and_post(client, seeker_user, provider_user, admin_user, chat):
    resp = await client.get(f"/v1/chats/{chat.id}/messages", headers=auth_headers(admin_user))
    assert resp.status_code == 200

    resp = await client.post(
        f"/v1/chats/{chat.id}/messages", json={"content": "Admin here"}, headers=auth_headers(admin_user)
    )
    assert resp.status_code == 201

    # Admin messages count as unread for both participants
    seeker_chats = (await client.get("/v1/chats", headers=auth_headers(seeker_user))).json()["data"]
    assert seeker_chats[0]["unread_count"] == 1


@pytest.mark.asyncio
async def test_send_attachment(client, seeker_user, chat):
    resp = await client.post(
        f"/v1/chats/{chat.id}/attachments",
        data={"type": "audio"},
        files={"file": ("note.webm", b"fake audio", "audio/webm")},
        headers=auth_headers(seeker_user),
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["type"] == "audio"
    assert data["content"].startswith("/uploads/chat/")

    resp = await client.get("/v1/chats", headers=auth_headers(seeker_user))
    assert resp.json()["data"][0]["last_message"] == "🎤 Audio"


@pytest.mark.asyncio
async def test_send_attachment_bad_type(client, seeker_user, chat):
    resp = await client.post(
        f"/v1/chats/{chat.id}/attachments",
        data={"type": "document"},
        files={"file": ("cv.pdf", b"%PDF", "application/pdf")},
        headers=auth_headers(seeker_user),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_read_chat(client, seeker_user, provider_user, chat):
    await client.post(f"/v1/chats/{chat.id}/messages", json={"content": "ping"}, headers=auth_headers(seeker_user))

    resp = await client.post(f"/v1/chats/{chat.id}/read", headers=auth_headers(provider_user))
    assert resp.status_code == 200

    chats = (await client.get("/v1/chats", headers=auth_headers(provider_user))).json()["data"]
    assert chats[0]["unread_count"] == 0

    messages = (await client.get(f"/v1/chats/{chat.id}/messages", headers=auth_headers(provider_user))).json()["data"]
    assert messages[0]["read_at"] is not None
