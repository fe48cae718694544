from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import List

import yaml
from sqlalchemy.orm import Session

from app.config import settings
from app.logging_config import get_logger
from app.models import Conversation
from app.services.llm import LLMProvider, OpenAIProvider
from app.services.message_service import get_conversation_messages, save_message
from app.services.state_machine import ConversationMode

logger = get_logger("ai_service")

_PROMPTS_PATH = Path(__file__).resolve().parents[1] / "knowledge" / "travel_prompts.yaml"

# 10 rounds of user + assistant.
MAX_HISTORY_MESSAGES = 20
LLM_TEMPERATURE = 0.7
LLM_MAX_TOKENS = 300

EMPTY_RESPONSE_FALLBACK = "抱歉，我無法產生回應。"
EMPTY_RECOMMENDATION_FALLBACK = "無法取得推薦景點。"


@lru_cache(maxsize=1)
def load_prompt_catalog() -> dict:
    with _PROMPTS_PATH.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return data if isinstance(data, dict) else {}


def get_prompt(name: str) -> str:
    prompts = load_prompt_catalog().get("prompts") or {}
    if name not in prompts:
        raise KeyError(f"Prompt '{name}' not found in {_PROMPTS_PATH.name}")
    return prompts[name]


def get_welcome_message(mode: ConversationMode) -> str:
    return (load_prompt_catalog().get("welcome") or {})[mode.value]


def get_mode_prompt(mode: ConversationMode) -> str:
    return get_prompt(mode.value)


def get_llm_provider() -> OpenAIProvider:
    """Build the provider from settings. Fails if OPENAI_API_KEY is missing."""
    settings.require("openai_api_key")
    return OpenAIProvider(
        api_key=settings.openai_api_key,
        default_model=settings.openai_model,
        base_url=settings.openai_base_url,
        timeout_seconds=settings.llm_timeout_seconds,
    )


def get_conversation_history(db: Session, conversation_id, limit: int = MAX_HISTORY_MESSAGES + 1) -> List[dict]:
    """Recent user/assistant turns in chronological order. System turns are never replayed."""
    history = []
    for msg in get_conversation_messages(db, conversation_id, limit=limit):
        if msg.role not in ("user", "assistant"):
            continue
        history.append({"role": msg.role, "content": msg.content})
    return history


def build_message_window(system_prompt: str, history: List[dict], max_history: int = MAX_HISTORY_MESSAGES) -> List[dict]:
    """System entry first, then at most `max_history` of the newest turns."""
    messages = [{"role": "system", "content": system_prompt}] + list(history)
    if len(messages) > max_history + 1:
        del messages[1 : len(messages) - max_history]
    return messages


def complete(
    db: Session,
    llm: LLMProvider,
    conversation: Conversation,
    system_prompt: str,
    user_text: str,
) -> str:
    """Store the user turn, ask the model with the history window, store and return the reply.

    Provider errors propagate to the caller untouched.
    """
    user_message = save_message(db, conversation, "user", user_text)

    history = get_conversation_history(db, conversation.id)
    messages = build_message_window(system_prompt, history)

    response = llm.generate(messages, temperature=LLM_TEMPERATURE, max_tokens=LLM_MAX_TOKENS)
    reply = (response.content or "").strip() or EMPTY_RESPONSE_FALLBACK

    # Strictly after the user turn so the pair always reads back in order.
    replied_at = max(datetime.now(timezone.utc), user_message.timestamp + timedelta(microseconds=1))
    save_message(db, conversation, "assistant", reply, timestamp=replied_at)
    logger.info(
        "Completion stored",
        extra={
            "context": {
                "conversation_id": str(conversation.id),
                "window": len(messages),
                "model": response.model,
            }
        },
    )
    return reply


def generate_general_response(db: Session, llm: LLMProvider, conversation: Conversation, user_text: str) -> str:
    return complete(db, llm, conversation, get_prompt("general"), user_text)


def generate_mode_response(
    db: Session,
    llm: LLMProvider,
    conversation: Conversation,
    mode: ConversationMode,
    user_text: str,
) -> str:
    return complete(db, llm, conversation, get_mode_prompt(mode), user_text)


def recommend_destinations(llm: LLMProvider, region: str) -> str:
    """Ask for the ten most popular spots of a region. Nothing is stored."""
    messages = [
        {"role": "system", "content": get_prompt("destination_recommendation").replace("{REGION}", region)},
        {"role": "user", "content": get_prompt("destination_recommendation_request").replace("{REGION}", region)},
    ]
    response = llm.generate(messages, temperature=LLM_TEMPERATURE, max_tokens=LLM_MAX_TOKENS)
    return (response.content or "").strip() or EMPTY_RECOMMENDATION_FALLBACK
