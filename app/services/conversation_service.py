from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import Conversation
from app.services.state_machine import ConversationMode

logger = get_logger("conversation_service")


def _new_conversation(db: Session, user_id: str) -> Conversation:
    now = datetime.now(timezone.utc)
    conversation = Conversation(
        user_id=user_id,
        title="",
        message_count=0,
        current_mode=None,
        created_at=now,
        updated_at=now,
    )
    db.add(conversation)
    db.flush()
    logger.info("Conversation created", extra={"context": {"user_id": user_id, "conversation_id": str(conversation.id)}})
    return conversation


def get_or_create_conversation(db: Session, user_id: str) -> Conversation:
    """Find the user's most recently updated conversation or create one."""
    conversation = (
        db.query(Conversation)
        .filter(Conversation.user_id == user_id)
        .order_by(Conversation.updated_at.desc())
        .first()
    )

    if not conversation:
        conversation = _new_conversation(db, user_id)

    return conversation


def create_new_conversation(db: Session, user_id: str) -> Conversation:
    """Start a fresh conversation; it becomes current by recency."""
    return _new_conversation(db, user_id)


def list_user_conversations(db: Session, user_id: str) -> List[Conversation]:
    return (
        db.query(Conversation)
        .filter(Conversation.user_id == user_id)
        .order_by(Conversation.updated_at.desc())
        .all()
    )


def update_conversation_mode(db: Session, conversation: Conversation, mode: Optional[ConversationMode]):
    """Set or clear the conversation's mode."""
    conversation.current_mode = mode.value if mode else None
    conversation.updated_at = datetime.now(timezone.utc)
    db.flush()
