from enum import Enum
from typing import Optional


class ConversationMode(str, Enum):
    DESTINATIONS = "popular_destinations"
    PLANNING = "travel_planning"
    FOOD = "food_recommendation"


# Exact-match phrases typed by the user (or sent as rich menu display text).
TRIGGER_PHRASES = {
    "熱門景點": ConversationMode.DESTINATIONS,
    "查看熱門景點": ConversationMode.DESTINATIONS,
    "旅遊規劃": ConversationMode.PLANNING,
    "開始規劃旅遊": ConversationMode.PLANNING,
    "美食推薦": ConversationMode.FOOD,
    "尋找美食": ConversationMode.FOOD,
}

# Modes that drop back to general after one answered query.
# planning and food stay active until another trigger.
SELF_RESETTING_MODES = frozenset({ConversationMode.DESTINATIONS})


class UnknownModeError(ValueError):
    def __init__(self, value: str):
        self.value = value
        super().__init__(f"Unknown conversation mode: {value}")


def parse_mode(value: Optional[str]) -> Optional[ConversationMode]:
    """Map a stored mode string to the enum. Empty means general mode."""
    if not value:
        return None
    try:
        return ConversationMode(value)
    except ValueError:
        raise UnknownModeError(value)


def mode_for_trigger(text: Optional[str]) -> Optional[ConversationMode]:
    """Return the mode a trigger phrase forces, or None for free text."""
    if text is None:
        return None
    return TRIGGER_PHRASES.get(text)


def mode_for_postback(data: Optional[str]) -> Optional[ConversationMode]:
    """Postback payloads are the mode values themselves."""
    if not data:
        return None
    try:
        return ConversationMode(data)
    except ValueError:
        return None


def exits_after_answer(mode: Optional[ConversationMode]) -> bool:
    return mode in SELF_RESETTING_MODES
