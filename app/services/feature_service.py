"""Feature modes: popular destinations, travel planning, food recommendation."""

import re
from typing import Optional

from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.models import Conversation
from app.services.ai_service import generate_mode_response, get_welcome_message, recommend_destinations
from app.services.conversation_service import update_conversation_mode
from app.services.llm import LLMProvider
from app.services.result import ModeOutcome, RedirectToGeneralMode, Replied
from app.services.state_machine import ConversationMode, exits_after_answer

logger = get_logger("feature_service")

# Words that make the text look like a question rather than a place name.
QUESTION_KEYWORDS = (
    "哪裡",
    "什麼",
    "如何",
    "怎麼",
    "為什麼",
    "在哪",
    "在哪裡",
    "他",
    "她",
    "它",
    "這個",
    "那個",
    "哪個",
)

# Scanned in order, first substring hit wins.
REGION_KEYWORDS = (
    "台灣",
    "日本",
    "墾丁",
    "花蓮",
    "台東",
    "宜蘭",
    "南投",
    "阿里山",
    "日月潭",
    "九份",
    "淡水",
    "台北",
    "新北",
    "桃園",
    "新竹",
    "苗栗",
    "台中",
    "彰化",
    "雲林",
    "嘉義",
    "台南",
    "高雄",
    "屏東",
)

GUIDANCE_MARKERS = ("您想查詢", "哪個地區")

MAX_VERBATIM_REGION_CHARS = 20
MAX_RECOMMENDED_SPOTS = 10

_LEADING_NUMBER = re.compile(r"^\d+[.)]\s*")


def welcome(db: Session, conversation: Conversation, mode: ConversationMode) -> str:
    """Enter the mode and return its static welcome text. No model call."""
    update_conversation_mode(db, conversation, mode)
    logger.info(
        "Mode entered",
        extra={"context": {"conversation_id": str(conversation.id), "mode": mode.value}},
    )
    return get_welcome_message(mode)


def is_question(text: str) -> bool:
    return any(keyword in text for keyword in QUESTION_KEYWORDS)


def extract_region(text: str) -> Optional[str]:
    for keyword in REGION_KEYWORDS:
        if keyword in text:
            return keyword
    return None


def looks_like_region_name(text: str) -> bool:
    return len(text) <= MAX_VERBATIM_REGION_CHARS and "?" not in text and "？" not in text


def format_recommendations(region: str, raw: str) -> str:
    result = f"📊 {region} 地區的熱門旅遊景點：\n\n"
    index = 1
    for line in raw.split("\n"):
        if not line.strip():
            continue
        clean = _LEADING_NUMBER.sub("", line.strip()).strip()
        if clean and index <= MAX_RECOMMENDED_SPOTS:
            result += f"{index}. {clean}\n"
            index += 1
    return result


def _recommend_for_region(db: Session, llm: LLMProvider, conversation: Conversation, region: str) -> str:
    try:
        raw = recommend_destinations(llm, region)
    except Exception as e:
        logger.error(f"Destination recommendation failed: {e}", extra={"context": {"region": region}})
        return f"📊 {region} 地區的熱門旅遊景點：\n\n抱歉，目前無法取得該地區的景點資訊。請稍後再試或查詢其他地區。"

    reply = format_recommendations(region, raw)
    if exits_after_answer(ConversationMode.DESTINATIONS):
        update_conversation_mode(db, conversation, None)
    return reply


def handle_popular_destinations(
    db: Session, llm: LLMProvider, conversation: Conversation, user_text: str
) -> ModeOutcome:
    if is_question(user_text):
        update_conversation_mode(db, conversation, None)
        logger.info(
            "Destinations input looks like a question, switching to general mode",
            extra={"context": {"conversation_id": str(conversation.id)}},
        )
        return RedirectToGeneralMode(user_text)

    response = generate_mode_response(db, llm, conversation, ConversationMode.DESTINATIONS, user_text)

    # The model is already asking which region.
    if any(marker in response for marker in GUIDANCE_MARKERS):
        return Replied(response)

    region = extract_region(user_text)
    if region:
        return Replied(_recommend_for_region(db, llm, conversation, region))

    if looks_like_region_name(user_text):
        return Replied(_recommend_for_region(db, llm, conversation, user_text))

    return Replied(response)


def handle_travel_planning(
    db: Session, llm: LLMProvider, conversation: Conversation, user_text: str
) -> ModeOutcome:
    return Replied(generate_mode_response(db, llm, conversation, ConversationMode.PLANNING, user_text))


def handle_food_recommendation(
    db: Session, llm: LLMProvider, conversation: Conversation, user_text: str
) -> ModeOutcome:
    return Replied(generate_mode_response(db, llm, conversation, ConversationMode.FOOD, user_text))


MODE_HANDLERS = {
    ConversationMode.DESTINATIONS: handle_popular_destinations,
    ConversationMode.PLANNING: handle_travel_planning,
    ConversationMode.FOOD: handle_food_recommendation,
}


def handle_message_by_mode(
    db: Session,
    llm: LLMProvider,
    conversation: Conversation,
    user_text: str,
    mode: ConversationMode,
) -> ModeOutcome:
    return MODE_HANDLERS[mode](db, llm, conversation, user_text)
