"""Tests for ad requests: submission, AI helpers, payment and admin review."""
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from app.core.config import settings
from app.models.ad import AdRequest
from app.services.ai import GeneratedAd, PaymentVerification
from tests.conftest import auth_headers, notifications_for

ADS = "app.routers.ads"


@pytest_asyncio.fixture
async def ad(db, provider_user):
    a = AdRequest(
        user_id=provider_user.id,
        name=provider_user.name,
        email=provider_user.email,
        title="24/7 emergency plumbing",
        message="Leaks, clogs and heaters across Riyadh",
        status="pending_review",
    )
    db.add(a)
    await db.commit()
    await db.refresh(a)
    return a


@pytest.mark.asyncio
async def test_create_ad_without_image(client, provider_user):
    resp = await client.post(
        "/v1/ads",
        data={"title": "Spring cleaning deal", "message": "20% off deep cleaning"},
        headers=auth_headers(provider_user),
    )
    assert resp.status_code == 201
    data = resp.json()
    assert data["status"] == "pending_review"
    assert data["name"] == "Omar Plumber"
    assert data["email"] == "omar@mail.com"
    assert data["image_url"] is None


@pytest.mark.asyncio
async def test_create_ad_with_image(client, provider_user):
    with patch(f"{ADS}.moderate_image", new_callable=AsyncMock, return_value=True):
        resp = await client.post(
            "/v1/ads",
            data={"title": "Spring cleaning deal", "message": "20% off deep cleaning"},
            files={"image": ("banner.png", b"fake banner", "image/png")},
            headers=auth_headers(provider_user),
        )
    assert resp.status_code == 201
    assert resp.json()["image_url"].startswith("/uploads/ad/")


@pytest.mark.asyncio
async def test_create_ad_flagged_image(client, provider_user):
    with patch(f"{ADS}.moderate_image", new_callable=AsyncMock, return_value=False):
        resp = await client.post(
            "/v1/ads",
            data={"title": "Deal", "message": "Body"},
            files={"image": ("banner.png", b"fake banner", "image/png")},
            headers=auth_headers(provider_user),
        )
    assert resp.status_code == 400

    my = await client.get("/v1/ads/my", headers=auth_headers(provider_user))
    assert my.json()["data"] == []


@pytest.mark.asyncio
async def test_generate_ad(client, provider_user):
    generated = GeneratedAd(title="Fast Fixes", body="We fix everything", image_suggestion="plumber fixing sink")
    with patch(f"{ADS}.generate_ad", new_callable=AsyncMock, return_value=generated) as mock_ai:
        resp = await client.post(
            "/v1/ads/generate",
            json={"service_type": "Plumbing", "service_areas": "Riyadh"},
            headers=auth_headers(provider_user),
        )
    assert resp.status_code == 200
    assert resp.json() == generated.model_dump()
    assert mock_ai.await_args.kwargs["provider_name"] == "Omar Plumber"


@pytest.mark.asyncio
async def test_generate_ad_failure(client, provider_user):
    with patch(f"{ADS}.generate_ad", new_callable=AsyncMock, side_effect=ValueError("AI failed")):
        resp = await client.post(
            "/v1/ads/generate",
            json={"service_type": "Plumbing", "service_areas": "Riyadh"},
            headers=auth_headers(provider_user),
        )
    assert resp.status_code == 502


@pytest.mark.asyncio
async def test_generate_ad_without_api_key(client, provider_user):
    with patch.object(settings, "ANTHROPIC_API_KEY", ""):
        resp = await client.post(
            "/v1/ads/generate",
            json={"service_type": "Plumbing", "service_areas": "Riyadh"},
            headers=auth_headers(provider_user),
        )
    assert resp.status_code == 502
    assert resp.json()["detail"] == "The AI model failed to generate a valid ad. Please try again."


@pytest.mark.asyncio
async def test_categorize_ad(client, provider_user):
    with patch(f"{ADS}.categorize_ad", new_callable=AsyncMock, return_value="Painting"):
        resp = await client.post(
            "/v1/ads/categorize", json={"description": "Interior wall painting"}, headers=auth_headers(provider_user)
        )
    assert resp.json()["category"] == "Painting"


@pytest.mark.asyncio
async def test_pending_ad_not_public(client, seeker_user, provider_user, ad):
    resp = await client.get("/v1/ads", headers=auth_headers(seeker_user))
    assert resp.json()["data"] == []

    resp = await client.get(f"/v1/ads/{ad.id}", headers=auth_headers(seeker_user))
    assert resp.status_code == 404

    resp = await client.get(f"/v1/ads/{ad.id}", headers=auth_headers(provider_user))
    assert resp.status_code == 200


@pytest.mark.asyncio
async def test_edit_rejected_ad_goes_back_to_review(client, db, provider_user, ad):
    ad.status = "rejected"
    ad.rejection_reason = "Too vague"
    await db.commit()

    resp = await client.put(
        f"/v1/ads/{ad.id}", json={"message": "Leaks fixed within 2 hours"}, headers=auth_headers(provider_user)
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "pending_review"
    assert data["rejection_reason"] is None
    assert data["message"] == "Leaks fixed within 2 hours"


@pytest.mark.asyncio
async def test_edit_active_ad_rejected(client, db, provider_user, ad):
    ad.status = "active"
    await db.commit()

    resp = await client.put(f"/v1/ads/{ad.id}", json={"title": "New"}, headers=auth_headers(provider_user))
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_admin_approve_then_ai_verified_payment(client, db, provider_user, admin_user, ad):
    resp = await client.post(
        f"/v1/admin/ads/{ad.id}/approve", json={"price": 150}, headers=auth_headers(admin_user)
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "pending_payment"
    assert resp.json()["price"] == 150.0

    notes = await notifications_for(db, provider_user)
    assert notes[-1].type == "ad_request_approved"
    assert "150.00 SAR" in notes[-1].body

    verification = PaymentVerification(is_verified=True, reason="AI Approved: Amount, currency, and payer name appear to match.")
    with patch(f"{ADS}.verify_payment", new_callable=AsyncMock, return_value=verification) as mock_ai:
        resp = await client.post(
            f"/v1/ads/{ad.id}/payment-proof",
            files={"file": ("receipt.png", b"fake receipt", "image/png")},
            headers=auth_headers(provider_user),
        )
    assert resp.json()["status"] == "active"
    assert mock_ai.await_args.kwargs["payee_name"] == "Khidmap"
    assert mock_ai.await_args.kwargs["amount"] == 150.0

    resp = await client.get("/v1/ads")
    assert resp.status_code in (401, 403)
    resp = await client.get("/v1/ads", headers=auth_headers(admin_user))
    assert [a["id"] for a in resp.json()["data"]] == [str(ad.id)]


@pytest.mark.asyncio
async def test_payment_review_then_admin_decisions(client, db, provider_user, admin_user, ad):
    await client.post(f"/v1/admin/ads/{ad.id}/approve", json={"price": 99.5}, headers=auth_headers(admin_user))

    verification = PaymentVerification(is_verified=False, reason="AI Rejected: Amount does not match.")
    with patch(f"{ADS}.verify_payment", new_callable=AsyncMock, return_value=verification):
        resp = await client.post(
            f"/v1/ads/{ad.id}/payment-proof",
            files={"file": ("receipt.png", b"fake receipt", "image/png")},
            headers=auth_headers(provider_user),
        )
    assert resp.json()["status"] == "payment_review"

    resp = await client.post(
        f"/v1/admin/ads/{ad.id}/reject-payment", json={"reason": "Wrong amount"}, headers=auth_headers(admin_user)
    )
    data = resp.json()
    assert data["status"] == "pending_payment"
    assert data["payment_proof_url"] is None

    notes = await notifications_for(db, provider_user)
    assert notes[-1].type == "ad_payment_rejected"
    assert "Wrong amount" in notes[-1].body

    with patch(f"{ADS}.verify_payment", new_callable=AsyncMock, return_value=verification):
        await client.post(
            f"/v1/ads/{ad.id}/payment-proof",
            files={"file": ("receipt.png", b"fake receipt", "image/png")},
            headers=auth_headers(provider_user),
        )
    resp = await client.post(f"/v1/admin/ads/{ad.id}/confirm-payment", headers=auth_headers(admin_user))
    assert resp.json()["status"] == "active"


@pytest.mark.asyncio
async def test_payment_proof_before_approval(client, provider_user, ad):
    resp = await client.post(
        f"/v1/ads/{ad.id}/payment-proof",
        files={"file": ("receipt.png", b"fake receipt", "image/png")},
        headers=auth_headers(provider_user),
    )
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_admin_reject_ad(client, db, provider_user, admin_user, ad):
    resp = await client.post(
        f"/v1/admin/ads/{ad.id}/reject", json={"reason": "Misleading claims"}, headers=auth_headers(admin_user)
    )
    assert resp.json()["status"] == "rejected"
    assert resp.json()["rejection_reason"] == "Misleading claims"

    # Only pending_review can be rejected
    resp = await client.post(
        f"/v1/admin/ads/{ad.id}/reject", json={"reason": "Again"}, headers=auth_headers(admin_user)
    )
    assert resp.status_code == 400
