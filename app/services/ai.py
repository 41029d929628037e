"""Anthropic-backed helpers: payment receipts, image moderation, categorization, ad copy."""

import base64
import json

import structlog
from anthropic import AsyncAnthropic
from pydantic import BaseModel

from app.core.config import settings

logger = structlog.get_logger()

_client: AsyncAnthropic | None = None

IMAGE_MEDIA_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
AD_CATEGORIES = ["Plumbing", "Electrical", "Carpentry", "Painting", "HomeCleaning", "Other"]
PROVIDER_CATEGORIES = ["Plumbing", "Electrical", "Other"]


def get_llm_client() -> AsyncAnthropic:
    """Get or create the Anthropic async client."""
    global _client
    if not settings.ANTHROPIC_API_KEY:
        raise RuntimeError("ANTHROPIC_API_KEY is not configured")
    if _client is None:
        _client = AsyncAnthropic(api_key=settings.ANTHROPIC_API_KEY)
    return _client


class PaymentVerification(BaseModel):
    is_verified: bool
    reason: str
    found_amount: float | None = None
    found_currency: str | None = None
    found_payer_name: str | None = None


class GeneratedAd(BaseModel):
    title: str
    body: str
    image_suggestion: str


VERIFY_PAYMENT_PROMPT = """You verify payment receipts for a services marketplace. Be careful and precise.

Expected transaction:
- Payer (sender): {payer}
- Payee (recipient): {payee}
- Amount: {amount}
- Currency: {currency}

Read the receipt image and extract the payer name, the payee name, the amount and the currency (e.g. USD, SAR, $, ر.س).
Set is_verified to true ONLY IF the amount matches exactly, the currency matches ('SAR' matches 'ر.س') and the payer name
plausibly matches (a partial match like 'Mohammed' for 'Mohammed Ahmed' is fine). The payee should also plausibly match.
If anything is unclear or does not match, set is_verified to false.

reason: "AI Approved: Amount, currency, and payer name appear to match." when verified, otherwise
"AI Rejected: <exact mismatch>" (for example "AI Rejected: Image is unclear or not a valid receipt.").

Return ONLY JSON:
{{"is_verified": true|false, "reason": "...", "found_amount": number|null, "found_currency": "..."|null, "found_payer_name": "..."|null}}"""

MODERATE_IMAGE_PROMPT = """Analyze this image for safety on a public services marketplace.
It is unsafe if it contains sexually explicit content, hate speech, harassment or dangerous content.

Return ONLY JSON: {"is_safe": true|false}"""

CATEGORIZE_AD_PROMPT = """You categorize service provider ad posts. Pick the category the ad fits best:
"Plumbing", "Electrical", "Carpentry", "Painting", "HomeCleaning" or "Other" when none fits clearly.

Description: {description}

Return ONLY JSON: {{"category": "..."}}"""

CATEGORIZE_PROVIDER_PROMPT = """You categorize service providers for a directory app.
- Plumbing: pipes, water heaters, drains, faucets, toilets.
- Electrical: wiring, circuits, outlets, lighting, panels.
- Other: any other trade (carpentry, painting) or a generic or unclear description.

Description: {description}

Return ONLY JSON: {{"category": "Plumbing" | "Electrical" | "Other"}}"""

GENERATE_AD_PROMPT = """You are a professional marketing copywriter creating an advertisement for a local service provider.
Write a catchy title and a clear, persuasive body in a professional, trustworthy tone. Structure the body in sections
(services, service areas) with bullet points where useful and weave the contact information in when provided.
Also suggest a two or three word background image, e.g. "plumber fixing sink".

Provider name: {provider_name}
Service type: {service_type}
Service areas: {service_areas}
Contact info: {contact_info}
Keywords/features: {keywords}

Return ONLY JSON: {{"title": "...", "body": "...", "image_suggestion": "..."}}"""


def _extract_json(text: str) -> dict:
    text = text.strip()
    # Handle potential markdown wrapping
    if text.startswith("```"):
        text = text.split("\n", 1)[1].rsplit("```", 1)[0].strip()
    start, end = text.find("{"), text.rfind("}")
    if start == -1 or end == -1:
        raise json.JSONDecodeError("No JSON object in model output", text, 0)
    return json.loads(text[start : end + 1])


def _image_block(data: bytes, media_type: str) -> dict:
    return {
        "type": "image",
        "source": {
            "type": "base64",
            "media_type": media_type,
            "data": base64.standard_b64encode(data).decode(),
        },
    }


async def _ask(content: str | list[dict], max_tokens: int | None = None) -> dict:
    client = get_llm_client()
    response = await client.messages.create(
        model=settings.LLM_MODEL,
        max_tokens=max_tokens or settings.LLM_MAX_TOKENS,
        messages=[{"role": "user", "content": content}],
    )
    return _extract_json(response.content[0].text)


async def verify_payment(
    data: bytes,
    media_type: str,
    amount: float,
    currency: str,
    payer_name: str,
    payee_name: str,
) -> PaymentVerification:
    """Check a receipt image against the expected transfer.

    Never raises: any failure comes back as an unverified result so the proof
    lands in manual review.
    """
    if media_type not in IMAGE_MEDIA_TYPES:
        return PaymentVerification(is_verified=False, reason="AI Rejected: Unsupported receipt format.")

    prompt = VERIFY_PAYMENT_PROMPT.format(payer=payer_name, payee=payee_name, amount=amount, currency=currency)
    try:
        result = await _ask([_image_block(data, media_type), {"type": "text", "text": prompt}])
        verification = PaymentVerification.model_validate(result)
    except Exception as e:
        logger.warning("payment_ai_verification_failed", error=str(e))
        return PaymentVerification(is_verified=False, reason=f"AI verification failed: {e}")

    logger.info("payment_ai_verified", is_verified=verification.is_verified, reason=verification.reason)
    return verification


async def moderate_image(data: bytes, media_type: str) -> bool:
    """Return True when the image is safe. Fails closed."""
    if media_type not in IMAGE_MEDIA_TYPES:
        return False
    try:
        result = await _ask([_image_block(data, media_type), {"type": "text", "text": MODERATE_IMAGE_PROMPT}], 50)
        return bool(result.get("is_safe", False))
    except Exception as e:
        logger.warning("image_moderation_failed", error=str(e))
        return False


async def categorize_ad(description: str) -> str:
    if not description.strip():
        return "Other"
    try:
        result = await _ask(CATEGORIZE_AD_PROMPT.format(description=description), 50)
    except Exception as e:
        logger.warning("ad_categorization_failed", error=str(e))
        return "Other"
    category = result.get("category")
    if category not in AD_CATEGORIES:
        logger.warning("ad_categorization_invalid", category=category)
        return "Other"
    return category


async def categorize_provider(description: str) -> str:
    if not description.strip():
        return "Other"
    try:
        result = await _ask(CATEGORIZE_PROVIDER_PROMPT.format(description=description), 50)
    except Exception as e:
        logger.warning("provider_categorization_failed", error=str(e))
        return "Other"
    category = result.get("category")
    return category if category in PROVIDER_CATEGORIES else "Other"


async def generate_ad(
    service_type: str,
    service_areas: str,
    provider_name: str,
    contact_info: str | None = None,
    keywords: str | None = None,
) -> GeneratedAd:
    """Generate ad copy. Raises ValueError on any model or client failure."""
    prompt = GENERATE_AD_PROMPT.format(
        provider_name=provider_name,
        service_type=service_type,
        service_areas=service_areas,
        contact_info=contact_info or "Not Provided",
        keywords=keywords or "Not Provided",
    )
    try:
        result = await _ask(prompt)
        ad = GeneratedAd.model_validate(result)
    except Exception as e:
        logger.warning("ad_generation_failed", error=str(e))
        raise ValueError("The AI model failed to generate a valid ad. Please try again.") from e
    logger.info("ad_generated", title=ad.title)
    return ad
