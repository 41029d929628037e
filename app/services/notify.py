import uuid

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.notification import Notification
from app.services.realtime import manager

logger = structlog.get_logger()

# type -> (title, body); bodies are str.format templates over the params
TEMPLATES: dict[str, tuple[str, str]] = {
    "new_order_request": ("New Service Request", "{seeker_name} has requested your service."),
    "order_accepted": ("Your Order was Accepted!", "{provider_name} has accepted your request. Please proceed with payment."),
    "order_declined": ("Order Request Declined", "{provider_name} has declined your service request."),
    "payment_received": ("Payment Received!", "{seeker_name} has paid for the order. You can now start the service."),
    "payment_under_review": ("Payment Pending", "Your payment proof for order {order_id} is being reviewed by an admin."),
    "payment_rejected": (
        "Payment Proof Rejected",
        "The payment proof for your order {order_id} was rejected by the admin. "
        "Please check your order details and upload a new proof.",
    ),
    "service_started": ("Service Started", "{provider_name} has started working on your order."),
    "grace_period_granted": ("Grace Period Granted", "{seeker_name} gave you {days} extra day(s) to start the service."),
    "work_finished": ("Work Finished", "{provider_name} has finished the work. Please review and complete the order."),
    "order_completed": ("Order Completed", "{seeker_name} has marked the order as completed. Your funds will be processed."),
    "order_disputed": ("Order Disputed", "A dispute has been raised for your order with {user_name}."),
    "dispute_resolved_seeker": (
        "Dispute Resolved",
        "The dispute on order {order_id} was resolved in favor of the service seeker. A refund will be processed.",
    ),
    "dispute_resolved_provider": (
        "Dispute Resolved",
        "The dispute on order {order_id} was resolved in favor of the service provider. The payout will be processed.",
    ),
    "verification_approved": ("Verification Approved", "Your documents were approved. Your profile is now verified."),
    "verification_rejected": ("Verification Rejected", "Your verification was rejected. Reason: {reason}"),
    "ad_request_approved": (
        "Ad Request Approved",
        "Your ad request has been approved and is now pending payment of {price}. "
        "Please go to 'My Ads' to complete the payment.",
    ),
    "ad_request_rejected": (
        "Ad Request Rejected",
        "Unfortunately, your advertisement request has been rejected. Reason: {reason}",
    ),
    "ad_payment_confirmed": ("Ad Payment Confirmed!", "Your payment has been confirmed and your ad is now active."),
    "ad_payment_review": (
        "Ad Payment Under Review",
        "Your ad payment is under review by the admin and will be activated shortly.",
    ),
    "ad_payment_rejected": (
        "Ad Payment Rejected",
        "Your payment proof was rejected. Reason: {reason}. Please upload new proof.",
    ),
    "support_in_progress": (
        "Support Ticket In Progress",
        "An admin is now reviewing your support ticket #{ticket_id}.",
    ),
    "support_closed": ("Support Ticket Closed", "Your support ticket #{ticket_id} has been closed by an admin."),
    "support_closed_with_reply": (
        "Support Ticket Closed",
        "Your support ticket #{ticket_id} has been closed. Admin Response: {reply}",
    ),
}


def render(type: str, params: dict | None = None) -> tuple[str, str]:
    title, body = TEMPLATES[type]
    return title, body.format(**(params or {}))


async def notify(
    db: AsyncSession,
    user_id: uuid.UUID,
    type: str,
    link: str = "/dashboard",
    params: dict | None = None,
) -> Notification | None:
    """Store a notification and push it to the user's open sockets.

    Best effort: failures are logged and never reach the caller. Callers
    commit their own changes before notifying.
    """
    try:
        title, body = render(type, params)
    except (KeyError, IndexError) as e:
        logger.warning("notification_failed", user_id=str(user_id), type=type, error=str(e))
        return None

    notification = Notification(user_id=user_id, type=type, title=title, body=body, link=link, params=params)
    db.add(notification)
    try:
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.warning("notification_failed", user_id=str(user_id), type=type, error=str(e))
        return None

    await manager.send_to_user(str(user_id), {
        "event": "notification",
        "data": {
            "id": str(notification.id),
            "type": notification.type,
            "title": notification.title,
            "body": notification.body,
            "link": notification.link,
            "created_at": notification.created_at.isoformat(),
        },
    })
    logger.info("notification_sent", user_id=str(user_id), type=type)
    return notification
