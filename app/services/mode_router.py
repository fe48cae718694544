from typing import Callable

from sqlalchemy.orm import Session

from app.logging_config import get_logger
from app.services.ai_service import generate_general_response
from app.services.conversation_service import get_or_create_conversation
from app.services.feature_service import handle_message_by_mode, welcome
from app.services.llm import LLMProvider
from app.services.result import RedirectToGeneralMode
from app.services.state_machine import mode_for_postback, mode_for_trigger, parse_mode

logger = get_logger("mode_router")

MSG_UNKNOWN_FEATURE = "抱歉，我不認識這個功能。"


def route_text_message(db: Session, get_llm: Callable[[], LLMProvider], user_id: str, text: str) -> str:
    """Pick the handler for one inbound text and return the reply.

    The provider is only built once a model call is needed; triggers never need one.
    """
    conversation = get_or_create_conversation(db, user_id)

    triggered = mode_for_trigger(text)
    if triggered:
        return welcome(db, conversation, triggered)

    current_mode = parse_mode(conversation.current_mode)
    llm = get_llm()
    if current_mode is None:
        return generate_general_response(db, llm, conversation, text)

    outcome = handle_message_by_mode(db, llm, conversation, text, current_mode)
    if isinstance(outcome, RedirectToGeneralMode):
        logger.info(
            "Redispatching in general mode",
            extra={"context": {"user_id": user_id, "from_mode": current_mode.value}},
        )
        return generate_general_response(db, llm, conversation, outcome.original_text)
    return outcome.text


def route_postback(db: Session, user_id: str, data: str) -> str:
    """Rich menu buttons: enter the mode named by the payload."""
    mode = mode_for_postback(data)
    if mode is None:
        logger.warning(f"Unknown postback payload: {data}", extra={"context": {"user_id": user_id}})
        return MSG_UNKNOWN_FEATURE

    conversation = get_or_create_conversation(db, user_id)
    return welcome(db, conversation, mode)
