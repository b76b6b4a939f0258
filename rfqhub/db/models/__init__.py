from rfqhub.db.models.message import Message
from rfqhub.db.models.notification import Notification
from rfqhub.db.models.rfq import RFQ, Quote
from rfqhub.db.models.user import User

__all__ = [
    "Message",
    "Notification",
    "Quote",
    "RFQ",
    "User",
]
