"""Tests for AI helpers, mail and the WebSocket connection manager."""
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from app.core.config import Settings, settings
from app.services import ai, mail
from app.services.realtime import ConnectionManager


def _llm_reply(payload) -> MagicMock:
    text = payload if isinstance(payload, str) else json.dumps(payload)
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=SimpleNamespace(content=[SimpleNamespace(text=text)]))
    return client


def test_extract_json_from_markdown():
    assert ai._extract_json('```json\n{"category": "Plumbing"}\n```') == {"category": "Plumbing"}
    assert ai._extract_json('Sure! {"is_safe": true} hope that helps') == {"is_safe": True}


def test_extract_json_without_object():
    with pytest.raises(json.JSONDecodeError):
        ai._extract_json("no json here")


@pytest.mark.asyncio
async def test_verify_payment_parses_result():
    client = _llm_reply({"is_verified": True, "reason": "AI Approved: match.", "found_amount": 200, "found_currency": "SAR"})
    with patch.object(ai, "get_llm_client", return_value=client):
        result = await ai.verify_payment(b"img", "image/png", 200, "SAR", "Sara", "Omar")
    assert result.is_verified is True
    assert result.found_amount == 200

    prompt = client.messages.create.await_args.kwargs["messages"][0]["content"][1]["text"]
    assert "Sara" in prompt
    assert "Omar" in prompt


@pytest.mark.asyncio
async def test_verify_payment_unsupported_format():
    with patch.object(ai, "get_llm_client") as get_client:
        result = await ai.verify_payment(b"%PDF", "application/pdf", 200, "SAR", "Sara", "Omar")
    assert result.is_verified is False
    assert result.reason == "AI Rejected: Unsupported receipt format."
    get_client.assert_not_called()


@pytest.mark.asyncio
async def test_verify_payment_never_raises():
    with patch.object(ai, "get_llm_client", return_value=_llm_reply("garbage")):
        result = await ai.verify_payment(b"img", "image/png", 200, "SAR", "Sara", "Omar")
    assert result.is_verified is False
    assert result.reason.startswith("AI verification failed")


@pytest.mark.asyncio
async def test_moderate_image_fails_closed():
    with patch.object(ai, "get_llm_client", return_value=_llm_reply({"is_safe": True})):
        assert await ai.moderate_image(b"img", "image/jpeg") is True
    with patch.object(ai, "get_llm_client", return_value=_llm_reply("not json")):
        assert await ai.moderate_image(b"img", "image/jpeg") is False
    assert await ai.moderate_image(b"img", "image/tiff") is False


@pytest.mark.asyncio
async def test_categorize_falls_back_to_other():
    with patch.object(ai, "get_llm_client", return_value=_llm_reply({"category": "Astrology"})):
        assert await ai.categorize_ad("Horoscopes") == "Other"
        assert await ai.categorize_provider("Horoscopes") == "Other"
    with patch.object(ai, "get_llm_client", return_value=_llm_reply({"category": "Electrical"})):
        assert await ai.categorize_provider("Rewiring old houses") == "Electrical"
    assert await ai.categorize_ad("   ") == "Other"


@pytest.mark.asyncio
async def test_generate_ad():
    reply = {"title": "Fast Fixes", "body": "We fix leaks", "image_suggestion": "plumber fixing sink"}
    client = _llm_reply(reply)
    with patch.object(ai, "get_llm_client", return_value=client):
        result = await ai.generate_ad("Plumbing", "Riyadh", "Omar")
    assert result.title == "Fast Fixes"
    prompt = client.messages.create.await_args.kwargs["messages"][0]["content"]
    assert "Contact info: Not Provided" in prompt


@pytest.mark.asyncio
async def test_requests_use_configured_model():
    assert Settings.model_fields["LLM_MODEL"].default == "claude-sonnet-4-5"

    client = _llm_reply({"category": "Plumbing"})
    with patch.object(settings, "LLM_MODEL", "claude-haiku-4-5"), patch.object(ai, "get_llm_client", return_value=client):
        assert await ai.categorize_ad("Leaking pipes") == "Plumbing"
    assert client.messages.create.await_args.kwargs["model"] == "claude-haiku-4-5"


@pytest.mark.asyncio
async def test_generate_ad_invalid_output():
    with patch.object(ai, "get_llm_client", return_value=_llm_reply({"title": "Only a title"})):
        with pytest.raises(ValueError):
            await ai.generate_ad("Plumbing", "Riyadh", "Omar")


@pytest.mark.asyncio
async def test_generate_ad_client_failures_become_value_error():
    client = MagicMock()
    client.messages.create = AsyncMock(return_value=SimpleNamespace(content=[SimpleNamespace(type="tool_use")]))
    with patch.object(ai, "get_llm_client", return_value=client):
        with pytest.raises(ValueError):
            await ai.generate_ad("Plumbing", "Riyadh", "Omar")

    client.messages.create = AsyncMock(side_effect=TypeError("Could not resolve authentication method"))
    with patch.object(ai, "get_llm_client", return_value=client):
        with pytest.raises(ValueError):
            await ai.generate_ad("Plumbing", "Riyadh", "Omar")


@pytest.mark.asyncio
async def test_ai_helpers_without_api_key():
    with patch.object(settings, "ANTHROPIC_API_KEY", ""):
        with pytest.raises(ValueError):
            await ai.generate_ad("Plumbing", "Riyadh", "Omar")
        assert await ai.moderate_image(b"img", "image/png") is False
        assert await ai.categorize_ad("Fixing leaks") == "Other"
        result = await ai.verify_payment(b"img", "image/png", 200, "SAR", "Sara", "Omar")
    assert result.is_verified is False
    assert "ANTHROPIC_API_KEY" in result.reason


@pytest.mark.asyncio
async def test_send_email_without_smtp_host():
    with patch.object(settings, "SMTP_HOST", ""), patch.object(mail, "_send") as send:
        assert await mail.send_email("sara@mail.com", "Hi", "<p>Hi</p>") is False
    send.assert_not_called()


@pytest.mark.asyncio
async def test_send_verification_email_link():
    with patch.object(settings, "SMTP_HOST", "smtp.mail.com"), patch.object(mail, "_send") as send:
        assert await mail.send_verification_email("sara@mail.com", "Sara", "tok123") is True
    to, subject, html = send.call_args.args
    assert to == "sara@mail.com"
    assert f"{settings.FRONTEND_URL}/verify-email?token=tok123" in html


@pytest.mark.asyncio
async def test_email_escapes_user_name():
    with patch.object(settings, "SMTP_HOST", "smtp.mail.com"), patch.object(mail, "_send") as send:
        await mail.send_password_reset_email("sara@mail.com", "<b>Sara</b>", "tok123")
    html = send.call_args.args[2]
    assert "Hello &lt;b&gt;Sara&lt;/b&gt;," in html
    assert "<b>Sara" not in html


@pytest.mark.asyncio
async def test_send_email_smtp_failure():
    with patch.object(settings, "SMTP_HOST", "smtp.mail.com"), patch.object(mail, "_send", side_effect=OSError("refused")):
        assert await mail.send_email("sara@mail.com", "Hi", "<p>Hi</p>") is False


@pytest.mark.asyncio
async def test_connection_manager():
    manager = ConnectionManager()
    ws = MagicMock()
    ws.accept = AsyncMock()
    ws.send_json = AsyncMock()

    await manager.connect("u1", ws)
    assert manager.is_online("u1")
    assert not manager.is_online("u2")

    await manager.send_to_users(["u1", "u2"], {"event": "typing"})
    ws.send_json.assert_awaited_once_with({"event": "typing"})

    ws.send_json.side_effect = RuntimeError("closed")
    await manager.send_to_user("u1", {"event": "typing"})
    assert not manager.is_online("u1")
