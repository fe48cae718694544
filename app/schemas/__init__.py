from app.schemas.admin import ConversationOut, MessageOut, PageResponse
from app.schemas.line import LineEvent, LineWebhookRequest, LineWebhookResponse

__all__ = [
    "ConversationOut",
    "LineEvent",
    "LineWebhookRequest",
    "LineWebhookResponse",
    "MessageOut",
    "PageResponse",
]
