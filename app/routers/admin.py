"""Admin API endpoints over stored conversation history."""

import math
from datetime import date, datetime, time, timezone
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import get_db
from app.logging_config import get_logger
from app.models import Conversation
from app.schemas.admin import (
    ClearResponse,
    ConversationListResponse,
    ConversationOut,
    MessageListResponse,
    MessageOut,
    MessageSearchResponse,
    NewConversationResponse,
    PopularDestinationOut,
    PopularDestinationsResponse,
    UserConversationsResponse,
)
from app.services import admin_query_service
from app.services.conversation_service import create_new_conversation, list_user_conversations
from app.services.message_service import (
    clear_conversation_messages,
    clear_user_conversations,
    count_messages,
    get_conversation_messages,
)

logger = get_logger("admin")

router = APIRouter(prefix="/admin", tags=["admin"])

MAX_PAGE_LIMIT = 100


# === VALIDATION ===


def _require_admin_token(provided: Optional[str]) -> None:
    expected = settings.admin_token
    if not expected:
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")
    if not provided or provided != expected:
        raise HTTPException(status_code=401, detail="Invalid admin token")


def _parse_int(value: Optional[str], name: str, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"{name} must be an integer")


def _parse_pagination(page: Optional[str], limit: Optional[str], default_limit: int) -> tuple[int, int]:
    page_num = _parse_int(page, "page", 1)
    limit_num = _parse_int(limit, "limit", default_limit)
    if page_num < 1:
        raise HTTPException(status_code=400, detail="page must be >= 1")
    if limit_num < 1 or limit_num > MAX_PAGE_LIMIT:
        raise HTTPException(status_code=400, detail=f"limit must be between 1 and {MAX_PAGE_LIMIT}")
    return page_num, limit_num


def _parse_date(value: Optional[str], name: str, end_of_day: bool = False) -> Optional[datetime]:
    """ISO date or datetime. A bare date used as an upper bound covers the whole day."""
    if not value:
        return None
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            parsed = datetime.combine(day, time.max if end_of_day else time.min)
        else:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name} format")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_uuid(value: Optional[str], name: str) -> UUID:
    if not value:
        raise HTTPException(status_code=400, detail=f"Missing required parameter: {name}")
    try:
        return UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {name} format")


def _storage_error(action: str, exc: Exception) -> HTTPException:
    logger.error(f"Admin {action} failed: {exc}", exc_info=True)
    return HTTPException(status_code=500, detail={"error": f"Failed to {action}", "details": str(exc)})


# === QUERY ENDPOINTS ===


@router.get("/conversations")
def list_conversations(
    userId: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    search: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db),
) -> ConversationListResponse | MessageSearchResponse:
    """List conversations, or matching messages when `search` is given."""
    start = _parse_date(startDate, "startDate")
    end = _parse_date(endDate, "endDate", end_of_day=True)
    page_num, limit_num = _parse_pagination(page, limit, default_limit=20)

    try:
        if search:
            result = admin_query_service.search_messages(
                db, search, user_id=userId, start_date=start, end_date=end, page=page_num, limit=limit_num
            )
            return MessageSearchResponse(
                messages=[MessageOut.from_model(msg) for msg in result.items],
                total=result.total,
                page=result.page,
                limit=result.limit,
                totalPages=result.total_pages,
            )

        result = admin_query_service.list_conversations(
            db, user_id=userId, start_date=start, end_date=end, page=page_num, limit=limit_num
        )
    except SQLAlchemyError as e:
        raise _storage_error("list conversations", e)

    return ConversationListResponse(
        conversations=[ConversationOut.from_model(conv) for conv in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        totalPages=result.total_pages,
    )


@router.get("/conversations/search")
def search_conversations(
    search: Optional[str] = None,
    userId: Optional[str] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db),
) -> ConversationListResponse:
    """Conversations owning a matching message or title, each once."""
    if not search:
        raise HTTPException(status_code=400, detail="Missing required parameter: search")
    start = _parse_date(startDate, "startDate")
    end = _parse_date(endDate, "endDate", end_of_day=True)
    page_num, limit_num = _parse_pagination(page, limit, default_limit=20)

    try:
        result = admin_query_service.search_conversations(
            db, search, user_id=userId, start_date=start, end_date=end, page=page_num, limit=limit_num
        )
    except SQLAlchemyError as e:
        raise _storage_error("search conversations", e)

    return ConversationListResponse(
        conversations=[ConversationOut.from_model(conv) for conv in result.items],
        total=result.total,
        page=result.page,
        limit=result.limit,
        totalPages=result.total_pages,
        isSearch=True,
    )


@router.get("/messages")
def list_messages(
    conversationId: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db),
) -> MessageListResponse:
    conversation_id = _parse_uuid(conversationId, "conversationId")
    page_num, limit_num = _parse_pagination(page, limit, default_limit=50)

    try:
        messages = get_conversation_messages(db, conversation_id, limit=limit_num, skip=(page_num - 1) * limit_num)
        total = count_messages(db, conversation_id)
    except SQLAlchemyError as e:
        raise _storage_error("list messages", e)

    return MessageListResponse(
        conversationId=conversation_id,
        messages=[MessageOut.from_model(msg) for msg in messages],
        total=total,
        page=page_num,
        limit=limit_num,
        totalPages=math.ceil(total / limit_num),
    )


@router.get("/destinations/popular")
def popular_destinations(
    region: Optional[str] = None,
    limit: Optional[str] = None,
    db: Session = Depends(get_db),
) -> PopularDestinationsResponse:
    _, limit_num = _parse_pagination(None, limit, default_limit=10)
    try:
        destinations = admin_query_service.get_popular_destinations(db, region=region, limit=limit_num)
    except SQLAlchemyError as e:
        raise _storage_error("count destinations", e)

    return PopularDestinationsResponse(
        region=region,
        destinations=[PopularDestinationOut(name=dest.name, count=dest.count) for dest in destinations],
    )


@router.get("/users/{user_id}/conversations")
def user_conversations(user_id: str, db: Session = Depends(get_db)) -> UserConversationsResponse:
    """Every conversation of one user, most recently updated first."""
    try:
        conversations = list_user_conversations(db, user_id)
    except SQLAlchemyError as e:
        raise _storage_error("list user conversations", e)

    return UserConversationsResponse(
        userId=user_id,
        conversations=[ConversationOut.from_model(conv) for conv in conversations],
    )


# === MAINTENANCE ENDPOINTS ===


@router.delete("/conversations/{conversation_id}/messages")
def clear_messages(
    conversation_id: UUID,
    db: Session = Depends(get_db),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
) -> ClearResponse:
    _require_admin_token(x_admin_token)

    if db.query(Conversation).filter(Conversation.id == conversation_id).first() is None:
        raise HTTPException(status_code=404, detail="Conversation not found")

    try:
        deleted = clear_conversation_messages(db, conversation_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise _storage_error("clear messages", e)

    logger.info("Conversation messages cleared", extra={"context": {"conversation_id": str(conversation_id)}})
    return ClearResponse(deleted=deleted)


@router.delete("/users/{user_id}/conversations")
def clear_conversations(
    user_id: str,
    db: Session = Depends(get_db),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
) -> ClearResponse:
    _require_admin_token(x_admin_token)

    try:
        deleted = clear_user_conversations(db, user_id)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise _storage_error("clear conversations", e)

    logger.info("User conversations cleared", extra={"context": {"user_id": user_id, "deleted": deleted}})
    return ClearResponse(deleted=deleted)


@router.post("/users/{user_id}/conversations")
def start_conversation(
    user_id: str,
    db: Session = Depends(get_db),
    x_admin_token: Optional[str] = Header(default=None, alias="X-Admin-Token"),
) -> NewConversationResponse:
    _require_admin_token(x_admin_token)

    try:
        conversation = create_new_conversation(db, user_id)
        db.commit()
        db.refresh(conversation)
    except SQLAlchemyError as e:
        db.rollback()
        raise _storage_error("create conversation", e)

    return NewConversationResponse(conversation=ConversationOut.from_model(conversation))
