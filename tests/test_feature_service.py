from unittest.mock import Mock, patch

from app.services.ai_service import get_prompt
from app.services.feature_service import (
    MAX_RECOMMENDED_SPOTS,
    extract_region,
    format_recommendations,
    handle_food_recommendation,
    handle_message_by_mode,
    handle_popular_destinations,
    handle_travel_planning,
    is_question,
    looks_like_region_name,
    welcome,
)
from app.services.llm import LLMProviderError
from app.services.result import RedirectToGeneralMode, Replied
from app.services.state_machine import ConversationMode


class TestTextHelpers:
    def test_question_keywords(self):
        assert is_question("墾丁在哪裡")
        assert is_question("那個地方好玩嗎")
        assert not is_question("墾丁")

    def test_first_region_keyword_wins(self):
        assert extract_region("我想去台北跟台中") == "台北"
        assert extract_region("想看日本的") == "日本"
        assert extract_region("隨便") is None

    def test_region_name_heuristic(self):
        assert looks_like_region_name("司徒加特")
        assert not looks_like_region_name("好玩嗎?")
        assert not looks_like_region_name("好玩嗎？")
        assert not looks_like_region_name("我" * 21)


class TestFormatRecommendations:
    def test_strips_model_numbering(self):
        result = format_recommendations("墾丁", "1. 鵝鑾鼻燈塔\n2) 南灣\n\n大街")

        assert result == "📊 墾丁 地區的熱門旅遊景點：\n\n1. 鵝鑾鼻燈塔\n2. 南灣\n3. 大街\n"

    def test_caps_at_ten_items(self):
        raw = "\n".join(f"{i}. 景點{i}" for i in range(1, 16))

        result = format_recommendations("花蓮", raw)

        assert f"{MAX_RECOMMENDED_SPOTS}. 景點10" in result
        assert "景點11" not in result
        assert "11. " not in result


class TestWelcome:
    @patch("app.services.feature_service.update_conversation_mode")
    def test_sets_mode_and_returns_static_text(self, mock_update):
        db = Mock()
        conversation = Mock(id="c1")

        text = welcome(db, conversation, ConversationMode.PLANNING)

        mock_update.assert_called_once_with(db, conversation, ConversationMode.PLANNING)
        assert text


class TestHandlePopularDestinations:
    def test_question_redirects_without_model_call(self, db, make_conversation, make_llm):
        conversation = make_conversation(mode="popular_destinations")
        llm = make_llm()

        outcome = handle_popular_destinations(db, llm, conversation, "墾丁在哪裡")

        assert outcome == RedirectToGeneralMode("墾丁在哪裡")
        assert conversation.current_mode is None
        assert llm.calls == []

    def test_known_region_recommends_and_exits(self, db, make_conversation, make_llm):
        conversation = make_conversation(mode="popular_destinations")
        llm = make_llm("好的，為您查詢墾丁。", "1. 鵝鑾鼻燈塔\n2. 南灣")

        outcome = handle_popular_destinations(db, llm, conversation, "墾丁")

        assert isinstance(outcome, Replied)
        assert outcome.text.startswith("📊 墾丁 地區的熱門旅遊景點：")
        assert "1. 鵝鑾鼻燈塔" in outcome.text
        assert conversation.current_mode is None
        assert llm.system_prompts()[0] == get_prompt("popular_destinations")

    def test_guidance_reply_keeps_mode(self, db, make_conversation, make_llm):
        conversation = make_conversation(mode="popular_destinations")
        llm = make_llm("請問您想查詢哪個地區呢？")

        outcome = handle_popular_destinations(db, llm, conversation, "隨便")

        assert outcome == Replied("請問您想查詢哪個地區呢？")
        assert conversation.current_mode == "popular_destinations"
        assert len(llm.calls) == 1

    def test_short_unknown_name_is_used_verbatim(self, db, make_conversation, make_llm):
        conversation = make_conversation(mode="popular_destinations")
        llm = make_llm("好的", "1. 國王大道")

        outcome = handle_popular_destinations(db, llm, conversation, "司徒加特")

        assert outcome.text.startswith("📊 司徒加特 地區的熱門旅遊景點：")
        assert conversation.current_mode is None

    def test_long_text_returns_model_reply(self, db, make_conversation, make_llm):
        conversation = make_conversation(mode="popular_destinations")
        text = "我最近想找個地方放鬆一下順便看看海邊的風景和夕陽"
        llm = make_llm("聽起來很棒！")

        outcome = handle_popular_destinations(db, llm, conversation, text)

        assert outcome == Replied("聽起來很棒！")
        assert conversation.current_mode == "popular_destinations"

    def test_recommendation_failure_keeps_mode(self, db, make_conversation, make_llm):
        conversation = make_conversation(mode="popular_destinations")
        llm = make_llm("好的")

        with patch(
            "app.services.feature_service.recommend_destinations",
            side_effect=LLMProviderError("boom", status_code=503),
        ):
            outcome = handle_popular_destinations(db, llm, conversation, "花蓮")

        assert "抱歉，目前無法取得該地區的景點資訊" in outcome.text
        assert conversation.current_mode == "popular_destinations"


class TestPersistentModes:
    def test_planning_stays_active(self, db, make_conversation, make_llm):
        conversation = make_conversation(mode="travel_planning")
        llm = make_llm("三天兩夜行程如下")

        outcome = handle_travel_planning(db, llm, conversation, "花蓮三天")

        assert outcome == Replied("三天兩夜行程如下")
        assert conversation.current_mode == "travel_planning"
        assert llm.system_prompts() == [get_prompt("travel_planning")]

    def test_food_stays_active(self, db, make_conversation, make_llm):
        conversation = make_conversation(mode="food_recommendation")

        outcome = handle_food_recommendation(db, make_llm("推薦牛肉麵"), conversation, "台南")

        assert outcome == Replied("推薦牛肉麵")
        assert conversation.current_mode == "food_recommendation"


class TestDispatch:
    def test_dispatches_by_mode(self, db, make_conversation, make_llm):
        llm = make_llm("美食")

        outcome = handle_message_by_mode(db, llm, make_conversation(), "拉麵", ConversationMode.FOOD)

        assert outcome == Replied("美食")
        assert llm.system_prompts() == [get_prompt("food_recommendation")]
