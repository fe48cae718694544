from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import MESSAGE_ROLES, Conversation, Message

logger = get_logger("message_service")

DEFAULT_PAGE_MESSAGES = 20


def save_message(
    db: Session,
    conversation: Conversation,
    role: str,
    content: str,
    timestamp: Optional[datetime] = None,
) -> Message:
    """Append one turn and bump the owning conversation's counter."""
    if role not in MESSAGE_ROLES:
        raise ValueError(f"Invalid message role: {role}")
    if not content or not content.strip():
        raise ValueError("Message content must not be empty")

    now = datetime.now(timezone.utc)
    message = Message(
        conversation_id=conversation.id,
        user_id=conversation.user_id,
        role=role,
        content=content,
        timestamp=timestamp or now,
        created_at=now,
        updated_at=now,
    )
    db.add(message)

    # Single UPDATE so concurrent appends do not lose increments.
    db.query(Conversation).filter(Conversation.id == conversation.id).update(
        {
            Conversation.message_count: Conversation.message_count + 1,
            Conversation.updated_at: now,
        },
        synchronize_session="fetch",
    )
    db.flush()
    return message


def get_conversation_messages(
    db: Session,
    conversation_id: UUID,
    limit: int = DEFAULT_PAGE_MESSAGES,
    skip: int = 0,
) -> List[Message]:
    """Newest `limit` messages after skipping `skip`, in chronological order."""
    messages = (
        db.query(Message)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.timestamp.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return list(reversed(messages))


def count_messages(db: Session, conversation_id: UUID) -> int:
    return db.query(Message).filter(Message.conversation_id == conversation_id).count()


def clear_conversation_messages(db: Session, conversation_id: UUID) -> int:
    """Delete every message of the conversation and reset its counter."""
    deleted = (
        db.query(Message).filter(Message.conversation_id == conversation_id).delete(synchronize_session=False)
    )
    db.query(Conversation).filter(Conversation.id == conversation_id).update(
        {Conversation.message_count: 0},
        synchronize_session="fetch",
    )
    db.flush()
    logger.info(
        "Conversation messages cleared",
        extra={"context": {"conversation_id": str(conversation_id), "deleted": deleted}},
    )
    return deleted


def clear_user_conversations(db: Session, user_id: str) -> int:
    """Delete every conversation of the user together with its messages."""
    conversation_ids = [row.id for row in db.query(Conversation.id).filter(Conversation.user_id == user_id).all()]
    if conversation_ids:
        db.query(Message).filter(Message.conversation_id.in_(conversation_ids)).delete(synchronize_session=False)
    deleted = db.query(Conversation).filter(Conversation.user_id == user_id).delete(synchronize_session=False)
    db.flush()
    logger.info("User conversations cleared", extra={"context": {"user_id": user_id, "deleted": deleted}})
    return deleted
