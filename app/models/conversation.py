import uuid

from sqlalchemy import Column, DateTime, Index, Integer, Text, Uuid
from sqlalchemy.orm import relationship

from app.database import Base


class Conversation(Base):
    __tablename__ = "conversations"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    user_id = Column(Text, nullable=False, index=True)  # LINE userId
    title = Column(Text, nullable=False, default="")
    message_count = Column(Integer, nullable=False, default=0)
    current_mode = Column(Text)  # popular_destinations, travel_planning, food_recommendation, NULL = general
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (Index("ix_conversations_user_id_updated_at", "user_id", "updated_at"),)
