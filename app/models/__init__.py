from app.models.ad import AdRequest
from app.models.call import Call
from app.models.chat import Chat, Message
from app.models.notification import Notification
from app.models.order import Order
from app.models.rating import Rating
from app.models.support import SupportRequest
from app.models.user import User

__all__ = [
    "User",
    "Order",
    "AdRequest",
    "SupportRequest",
    "Chat",
    "Message",
    "Call",
    "Rating",
    "Notification",
]
