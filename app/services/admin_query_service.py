"""Read-only queries behind the admin endpoints."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Generic, List, Optional, TypeVar

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from app.models import Conversation, Message

T = TypeVar("T")

# Names counted by the popular destinations report.
COMMON_DESTINATIONS = (
    "墾丁", "花蓮", "台東", "宜蘭", "南投", "阿里山", "日月潭", "清境", "九份", "淡水",
    "台北", "新北", "桃園", "新竹", "苗栗", "台中", "彰化", "雲林", "嘉義", "台南", "高雄", "屏東",
    "太魯閣", "七星潭", "東海岸", "綠島", "蘭嶼", "小琉球", "澎湖", "金門", "馬祖",
    "陽明山", "北投", "西門町", "信義區", "士林", "大稻埕", "貓空",
    "合歡山", "武嶺", "玉山", "雪山", "奇萊", "能高",
)  # fmt: skip

# Padding used when there are not enough mentions yet.
DEFAULT_DESTINATIONS = ("墾丁", "花蓮", "台東", "宜蘭", "南投", "阿里山", "日月潭", "九份", "淡水", "太魯閣")


@dataclass
class Page(Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class PopularDestination:
    name: str
    count: int = field(default=0)


def _like_pattern(term: str) -> str:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _paginate(query: Query, order_by, page: int, limit: int) -> Page:
    total = query.order_by(None).count()
    items = query.order_by(order_by).offset((page - 1) * limit).limit(limit).all()
    return Page(items=items, total=total, page=page, limit=limit)


def _conversation_filters(
    query: Query,
    user_id: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> Query:
    if user_id:
        query = query.filter(Conversation.user_id == user_id)
    if start_date:
        query = query.filter(Conversation.created_at >= start_date)
    if end_date:
        query = query.filter(Conversation.created_at <= end_date)
    return query


def _matching_messages(
    db: Session,
    search: str,
    user_id: Optional[str],
    start_date: Optional[datetime],
    end_date: Optional[datetime],
) -> Query:
    query = db.query(Message).filter(Message.content.ilike(_like_pattern(search), escape="\\"))
    if user_id:
        query = query.filter(Message.user_id == user_id)
    if start_date:
        query = query.filter(Message.timestamp >= start_date)
    if end_date:
        query = query.filter(Message.timestamp <= end_date)
    return query


def list_conversations(
    db: Session,
    user_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = 1,
    limit: int = 20,
) -> Page[Conversation]:
    query = _conversation_filters(db.query(Conversation), user_id, start_date, end_date)
    return _paginate(query, Conversation.updated_at.desc(), page, limit)


def search_messages(
    db: Session,
    search: str,
    user_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = 1,
    limit: int = 50,
) -> Page[Message]:
    """Case-insensitive substring match on message content, newest first."""
    query = _matching_messages(db, search, user_id, start_date, end_date)
    return _paginate(query, Message.timestamp.desc(), page, limit)


def search_conversations(
    db: Session,
    search: str,
    user_id: Optional[str] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    page: int = 1,
    limit: int = 20,
) -> Page[Conversation]:
    """Conversations with a matching message or title, each listed once."""
    hit_ids = (
        _matching_messages(db, search, user_id, start_date, end_date)
        .with_entities(Message.conversation_id)
        .distinct()
    )
    query = db.query(Conversation).filter(
        or_(
            Conversation.id.in_(hit_ids.scalar_subquery()),
            Conversation.title.ilike(_like_pattern(search), escape="\\"),
        )
    )
    query = _conversation_filters(query, user_id, start_date, end_date)
    return _paginate(query, Conversation.updated_at.desc(), page, limit)


def get_popular_destinations(db: Session, region: Optional[str] = None, limit: int = 10) -> List[PopularDestination]:
    """Count destination mentions in user turns, padded with defaults up to `limit`."""
    query = db.query(Message.content).filter(Message.role == "user")

    if region:
        related = [dest for dest in COMMON_DESTINATIONS if dest in region or region in dest] or [region]
        query = query.filter(or_(*[Message.content.ilike(_like_pattern(name), escape="\\") for name in related]))

    counts: dict[str, int] = {}
    for (content,) in query.all():
        for dest in COMMON_DESTINATIONS:
            if dest in content:
                counts[dest] = counts.get(dest, 0) + 1

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:limit]
    destinations = [PopularDestination(name=name, count=count) for name, count in ranked]

    if len(destinations) < limit:
        seen = {dest.name for dest in destinations}
        for name in DEFAULT_DESTINATIONS:
            if len(destinations) >= limit:
                break
            if name not in seen:
                destinations.append(PopularDestination(name=name))

    return destinations
