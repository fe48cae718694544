from app.models.conversation import Conversation
from app.models.message import MESSAGE_ROLES, Message

__all__ = [
    "Conversation",
    "Message",
    "MESSAGE_ROLES",
]
