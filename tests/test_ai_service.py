from datetime import datetime, timezone
from unittest.mock import Mock, patch
from uuid import uuid4

import pytest

from app.config import ConfigurationError
from app.services.ai_service import (
    EMPTY_RECOMMENDATION_FALLBACK,
    EMPTY_RESPONSE_FALLBACK,
    build_message_window,
    complete,
    generate_general_response,
    generate_mode_response,
    get_conversation_history,
    get_llm_provider,
    get_mode_prompt,
    get_prompt,
    get_welcome_message,
    recommend_destinations,
)
from app.services.llm import LLMProviderError
from app.services.message_service import get_conversation_messages
from app.services.state_machine import ConversationMode


class TestPromptCatalog:
    def test_general_prompt_loaded(self):
        assert "旅遊規劃助理" in get_prompt("general")

    def test_every_mode_has_prompt_and_welcome(self):
        for mode in ConversationMode:
            assert get_mode_prompt(mode)
            assert get_welcome_message(mode)

    def test_destinations_welcome_asks_for_region(self):
        assert "地區" in get_welcome_message(ConversationMode.DESTINATIONS)

    def test_unknown_prompt_raises(self):
        with pytest.raises(KeyError):
            get_prompt("does_not_exist")


class TestGetConversationHistory:
    def test_returns_empty_list_for_no_messages(self):
        mock_db = Mock()
        mock_db.query().filter().order_by().offset().limit().all.return_value = []

        result = get_conversation_history(mock_db, uuid4())

        assert result == []

    def test_converts_messages_to_history_format(self):
        mock_db = Mock()
        msg1 = Mock(role="user", content="Hello")
        msg2 = Mock(role="assistant", content="Hi there")
        mock_db.query().filter().order_by().offset().limit().all.return_value = [msg2, msg1]

        result = get_conversation_history(mock_db, uuid4())

        assert result == [
            {"role": "user", "content": "Hello"},
            {"role": "assistant", "content": "Hi there"},
        ]

    def test_skips_system_messages(self):
        mock_db = Mock()
        msg1 = Mock(role="system", content="System instruction")
        msg2 = Mock(role="user", content="Hello")
        mock_db.query().filter().order_by().offset().limit().all.return_value = [msg2, msg1]

        result = get_conversation_history(mock_db, uuid4())

        assert len(result) == 1
        assert result[0]["role"] == "user"


class TestBuildMessageWindow:
    def test_system_entry_first(self):
        window = build_message_window("sys", [{"role": "user", "content": "hi"}])
        assert window[0] == {"role": "system", "content": "sys"}
        assert window[1]["content"] == "hi"

    def test_keeps_newest_twenty(self):
        history = [{"role": "user", "content": str(i)} for i in range(21)]

        window = build_message_window("sys", history)

        assert len(window) == 21
        assert window[0]["role"] == "system"
        assert [m["content"] for m in window[1:]] == [str(i) for i in range(1, 21)]


class TestComplete:
    def test_stores_both_turns(self, db, make_conversation, make_llm):
        conversation = make_conversation()
        llm = make_llm("你好，旅人！")

        reply = complete(db, llm, conversation, "sys", "哈囉")

        assert reply == "你好，旅人！"
        stored = get_conversation_messages(db, conversation.id)
        assert [(m.role, m.content) for m in stored] == [("user", "哈囉"), ("assistant", "你好，旅人！")]
        assert conversation.message_count == 2

    def test_reply_ordered_after_user_turn_in_same_tick(self, db, make_conversation, make_llm):
        conversation = make_conversation()
        frozen = datetime(2026, 2, 1, 8, 30, tzinfo=timezone.utc)

        with patch("app.services.message_service.datetime") as msg_clock, patch(
            "app.services.ai_service.datetime"
        ) as ai_clock:
            msg_clock.now.return_value = frozen
            ai_clock.now.return_value = frozen
            complete(db, make_llm("好的"), conversation, "sys", "去台南")

        stored = get_conversation_messages(db, conversation.id)
        assert [m.role for m in stored] == ["user", "assistant"]
        assert stored[0].timestamp < stored[1].timestamp

    def test_sends_sampling_parameters(self, db, make_conversation, make_llm):
        llm = make_llm("ok")

        complete(db, llm, make_conversation(), "sys", "hi")

        assert llm.calls[0]["temperature"] == 0.7
        assert llm.calls[0]["max_tokens"] == 300

    def test_window_is_capped_at_twenty_one(self, db, make_conversation, add_messages, make_llm):
        conversation = make_conversation()
        add_messages(conversation, [f"turn {i}" for i in range(24)])
        llm = make_llm("reply")

        complete(db, llm, conversation, "sys", "turn 24")

        sent = llm.calls[0]["messages"]
        assert len(sent) == 21
        assert sent[0] == {"role": "system", "content": "sys"}
        assert [m["content"] for m in sent[1:]] == [f"turn {i}" for i in range(5, 25)]

    def test_empty_output_uses_fallback(self, db, make_conversation, make_llm):
        conversation = make_conversation()

        reply = complete(db, make_llm("   "), conversation, "sys", "hi")

        assert reply == EMPTY_RESPONSE_FALLBACK
        assert get_conversation_messages(db, conversation.id)[-1].content == EMPTY_RESPONSE_FALLBACK

    def test_provider_error_propagates(self, db, make_conversation, make_llm):
        llm = make_llm(error=LLMProviderError("boom", status_code=500))

        with pytest.raises(LLMProviderError):
            complete(db, llm, make_conversation(), "sys", "hi")


class TestPromptSelection:
    def test_general_response_uses_general_prompt(self, db, make_conversation, make_llm):
        llm = make_llm()
        generate_general_response(db, llm, make_conversation(), "hi")
        assert llm.system_prompts() == [get_prompt("general")]

    def test_mode_response_uses_mode_prompt(self, db, make_conversation, make_llm):
        llm = make_llm()
        generate_mode_response(db, llm, make_conversation(), ConversationMode.FOOD, "拉麵")
        assert llm.system_prompts() == [get_prompt("food_recommendation")]


class TestRecommendDestinations:
    def test_region_is_substituted(self, make_llm):
        llm = make_llm("1. 鵝鑾鼻燈塔")

        result = recommend_destinations(llm, "墾丁")

        assert result == "1. 鵝鑾鼻燈塔"
        messages = llm.calls[0]["messages"]
        assert "墾丁" in messages[0]["content"]
        assert "{REGION}" not in messages[0]["content"]
        assert messages[1] == {"role": "user", "content": "請推薦 墾丁 地區的 10 個熱門旅遊景點。"}

    def test_empty_output_uses_fallback(self, make_llm):
        assert recommend_destinations(make_llm(""), "花蓮") == EMPTY_RECOMMENDATION_FALLBACK


class TestGetLLMProvider:
    @patch("app.services.ai_service.settings")
    def test_missing_api_key_raises(self, mock_settings):
        mock_settings.require.side_effect = ConfigurationError("OPENAI_API_KEY environment variable is not set")

        with pytest.raises(ConfigurationError):
            get_llm_provider()

    @patch("app.services.ai_service.settings")
    def test_builds_provider_from_settings(self, mock_settings):
        mock_settings.openai_api_key = "sk-test"
        mock_settings.openai_model = "gpt-4o-mini"
        mock_settings.openai_base_url = "https://example.test/v1/chat/completions"
        mock_settings.llm_timeout_seconds = 5.0

        provider = get_llm_provider()

        assert provider.api_key == "sk-test"
        assert provider.timeout_seconds == 5.0
