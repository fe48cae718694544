from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel


class ConversationOut(BaseModel):
    id: UUID
    userId: str
    title: str
    messageCount: int
    currentMode: Optional[str] = None
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_model(cls, conversation) -> "ConversationOut":
        return cls(
            id=conversation.id,
            userId=conversation.user_id,
            title=conversation.title or "",
            messageCount=conversation.message_count or 0,
            currentMode=conversation.current_mode,
            createdAt=conversation.created_at,
            updatedAt=conversation.updated_at,
        )


class MessageOut(BaseModel):
    id: UUID
    conversationId: UUID
    userId: str
    role: str
    content: str
    timestamp: datetime

    @classmethod
    def from_model(cls, message) -> "MessageOut":
        return cls(
            id=message.id,
            conversationId=message.conversation_id,
            userId=message.user_id,
            role=message.role,
            content=message.content,
            timestamp=message.timestamp,
        )


class PageResponse(BaseModel):
    total: int
    page: int
    limit: int
    totalPages: int


class ConversationListResponse(PageResponse):
    conversations: list[ConversationOut]
    isSearch: bool = False


class MessageSearchResponse(PageResponse):
    messages: list[MessageOut]
    isSearch: bool = True


class MessageListResponse(PageResponse):
    conversationId: UUID
    messages: list[MessageOut]


class PopularDestinationOut(BaseModel):
    name: str
    count: int


class PopularDestinationsResponse(BaseModel):
    region: Optional[str] = None
    destinations: list[PopularDestinationOut]


class ClearResponse(BaseModel):
    success: bool = True
    deleted: int


class NewConversationResponse(BaseModel):
    success: bool = True
    conversation: ConversationOut


class UserConversationsResponse(BaseModel):
    userId: str
    conversations: list[ConversationOut]
