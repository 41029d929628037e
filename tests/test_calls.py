"""Tests for calls: ringing, signaling, status changes and the unanswered sweep."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from app.models.call import Call
from app.models.chat import Message
from app.services.call_sweeper import expire_ringing_calls
from app.services.messaging import call_status_text
from tests.conftest import auth_headers, make_user

OFFER = {"sdp": "v=0 offer", "type": "offer"}
ANSWER = {"sdp": "v=0 answer", "type": "answer"}


async def _start_call(client, chat, caller, callee, type="audio"):
    return await client.post(
        "/v1/calls",
        json={"chat_id": str(chat.id), "callee_id": str(callee.id), "type": type},
        headers=auth_headers(caller),
    )


async def _call_logs(db, chat) -> list[Message]:
    result = await db.execute(
        select(Message).where(Message.chat_id == chat.id, Message.type == "system_call_status")
    )
    return list(result.scalars().all())


@pytest.mark.asyncio
async def test_start_call(client, seeker_user, provider_user, chat):
    resp = await _start_call(client, chat, seeker_user, provider_user, "video")
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "ringing"
    assert data["type"] == "video"
    assert data["caller_name"] == "Sara Seeker"
    assert data["callee_name"] == "Omar Plumber"


@pytest.mark.asyncio
async def test_cannot_call_self(client, seeker_user, chat):
    resp = await _start_call(client, chat, seeker_user, seeker_user)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_callee_must_be_in_chat(client, db, seeker_user, chat):
    stranger = await make_user(db, "Stranger", "stranger@mail.com", "provider")
    resp = await _start_call(client, chat, seeker_user, stranger)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_video_call_disabled(client, db, seeker_user, provider_user, chat):
    provider_user.video_calls_enabled = False
    await db.commit()

    resp = await _start_call(client, chat, seeker_user, provider_user, "video")
    assert resp.status_code == 400

    resp = await _start_call(client, chat, seeker_user, provider_user, "audio")
    assert resp.status_code == 201


@pytest.mark.asyncio
async def test_signaling_roles(client, seeker_user, provider_user, chat):
    call_id = (await _start_call(client, chat, seeker_user, provider_user)).json()["id"]

    resp = await client.put(f"/v1/calls/{call_id}/signal", json={"offer": OFFER}, headers=auth_headers(provider_user))
    assert resp.status_code == 403

    resp = await client.put(f"/v1/calls/{call_id}/signal", json={"offer": OFFER}, headers=auth_headers(seeker_user))
    assert resp.status_code == 200
    assert resp.json()["offer"] == OFFER

    resp = await client.put(f"/v1/calls/{call_id}/signal", json={"answer": ANSWER}, headers=auth_headers(seeker_user))
    assert resp.status_code == 403

    resp = await client.put(f"/v1/calls/{call_id}/signal", json={"answer": ANSWER}, headers=auth_headers(provider_user))
    assert resp.status_code == 200
    assert resp.json()["answer"] == ANSWER


@pytest.mark.asyncio
async def test_signal_needs_exactly_one_description(client, seeker_user, provider_user, chat):
    call_id = (await _start_call(client, chat, seeker_user, provider_user)).json()["id"]
    resp = await client.put(
        f"/v1/calls/{call_id}/signal", json={"offer": OFFER, "answer": ANSWER}, headers=auth_headers(seeker_user)
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_answer_and_end_call(client, db, seeker_user, provider_user, chat):
    call_id = (await _start_call(client, chat, seeker_user, provider_user)).json()["id"]

    resp = await client.post(f"/v1/calls/{call_id}/status", json={"status": "active"}, headers=auth_headers(provider_user))
    assert resp.json()["status"] == "active"
    assert resp.json()["started_at"] is not None

    resp = await client.post(f"/v1/calls/{call_id}/status", json={"status": "ended"}, headers=auth_headers(seeker_user))
    assert resp.json()["status"] == "ended"
    assert resp.json()["ended_at"] is not None

    logs = await _call_logs(db, chat)
    assert len(logs) == 1
    assert logs[0].sender_id == "system"
    assert logs[0].content == "Call ended - audio"
    assert logs[0].call_metadata["call_id"] == call_id
    assert logs[0].call_metadata["duration"] >= 0

    # Finished calls are immutable
    resp = await client.post(f"/v1/calls/{call_id}/status", json={"status": "active"}, headers=auth_headers(seeker_user))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_decline_call(client, db, seeker_user, provider_user, chat):
    call_id = (await _start_call(client, chat, seeker_user, provider_user, "video")).json()["id"]

    resp = await client.post(f"/v1/calls/{call_id}/status", json={"status": "declined"}, headers=auth_headers(provider_user))
    assert resp.json()["status"] == "declined"

    logs = await _call_logs(db, chat)
    assert [m.content for m in logs] == ["Declined video call"]

    # The call log counts as unread for both sides
    chats = (await client.get("/v1/chats", headers=auth_headers(seeker_user))).json()["data"]
    assert chats[0]["unread_count"] == 1
    assert chats[0]["last_message"] == "Declined video call"


@pytest.mark.asyncio
async def test_cannot_decline_active_call(client, seeker_user, provider_user, chat):
    call_id = (await _start_call(client, chat, seeker_user, provider_user)).json()["id"]
    await client.post(f"/v1/calls/{call_id}/status", json={"status": "active"}, headers=auth_headers(provider_user))

    resp = await client.post(f"/v1/calls/{call_id}/status", json={"status": "declined"}, headers=auth_headers(provider_user))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_call_hidden_from_outsiders(client, db, seeker_user, provider_user, chat):
    call_id = (await _start_call(client, chat, seeker_user, provider_user)).json()["id"]
    outsider = await make_user(db, "Nosy", "nosy@mail.com", "seeker")
    resp = await client.get(f"/v1/calls/{call_id}", headers=auth_headers(outsider))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_expire_ringing_calls(db, seeker_user, provider_user, chat):
    stale = Call(
        chat_id=chat.id,
        caller_id=seeker_user.id,
        caller_name=seeker_user.name,
        callee_id=provider_user.id,
        callee_name=provider_user.name,
        type="audio",
        status="ringing",
        created_at=datetime.now(timezone.utc) - timedelta(seconds=45),
    )
    fresh = Call(
        chat_id=chat.id,
        caller_id=seeker_user.id,
        caller_name=seeker_user.name,
        callee_id=provider_user.id,
        callee_name=provider_user.name,
        type="audio",
        status="ringing",
    )
    db.add_all([stale, fresh])
    await db.commit()

    assert await expire_ringing_calls(db) == 1
    assert stale.status == "unanswered"
    assert stale.ended_at is not None
    assert fresh.status == "ringing"

    logs = await _call_logs(db, chat)
    assert [m.content for m in logs] == ["Missed audio call"]

    assert await expire_ringing_calls(db) == 0


def test_call_status_text():
    ended = Call(type="video", status="ended", started_at=datetime.now(timezone.utc))
    never_answered = Call(type="video", status="ended")
    assert call_status_text(ended) == "Call ended - video"
    assert call_status_text(never_answered) == "Missed video call"
    assert call_status_text(Call(type="audio", status="unanswered")) == "Missed audio call"
