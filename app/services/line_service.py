import base64
import hashlib
import hmac
from typing import Optional

import httpx

from app.logging_config import get_logger
from app.services.result import Result
from app.services.state_machine import ConversationMode

logger = get_logger("line_service")

DEFAULT_API_BASE_URL = "https://api.line.me/v2/bot"

# Three equal columns; each button posts back a mode value and echoes its trigger phrase.
TRAVEL_RICH_MENU = {
    "size": {"width": 2500, "height": 843},
    "selected": False,
    "name": "Travel Bot Menu",
    "chatBarText": "選單",
    "areas": [
        {
            "bounds": {"x": 0, "y": 0, "width": 833, "height": 843},
            "action": {
                "type": "postback",
                "label": "熱門景點",
                "data": ConversationMode.DESTINATIONS.value,
                "displayText": "查看熱門景點",
            },
        },
        {
            "bounds": {"x": 833, "y": 0, "width": 833, "height": 843},
            "action": {
                "type": "postback",
                "label": "旅遊規劃",
                "data": ConversationMode.PLANNING.value,
                "displayText": "開始規劃旅遊",
            },
        },
        {
            "bounds": {"x": 1666, "y": 0, "width": 834, "height": 843},
            "action": {
                "type": "postback",
                "label": "美食推薦",
                "data": ConversationMode.FOOD.value,
                "displayText": "尋找美食",
            },
        },
    ],
}


def compute_signature(body: bytes, secret: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("utf-8")


def verify_signature(body: bytes, signature: Optional[str], secret: str) -> bool:
    """Check x-line-signature: base64(HMAC-SHA256(channel secret, raw body))."""
    if not secret or not signature:
        return False
    return hmac.compare_digest(compute_signature(body, secret), signature)


class LineService:
    """Service for talking to the LINE Messaging API."""

    def __init__(self, access_token: str, base_url: str = DEFAULT_API_BASE_URL):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")

    def _make_request(self, method: str, path: str, data: Optional[dict] = None) -> Result[dict]:
        """Call the Messaging API. Never raises; failures come back as Result.failure."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            with httpx.Client(timeout=30.0) as client:
                response = client.request(
                    method,
                    url,
                    headers={"Authorization": f"Bearer {self.access_token}"},
                    json=data,
                )
        except Exception as e:
            logger.error(f"LINE API error: {e}", extra={"context": {"path": path}})
            return Result.failure(str(e), "line_unreachable")

        if response.status_code != 200:
            logger.error(
                f"LINE API error: {response.status_code} - {response.text[:200]}",
                extra={"context": {"path": path}},
            )
            return Result.failure(f"LINE API error: {response.status_code} - {response.text}", "line_error")

        try:
            payload = response.json() if response.content else {}
        except ValueError:
            payload = {}
        return Result.success(payload)

    def reply_text(self, reply_token: str, text: str) -> Result[dict]:
        """Reply to one webhook event with a single text message."""
        result = self._make_request(
            "POST",
            "message/reply",
            {"replyToken": reply_token, "messages": [{"type": "text", "text": text}]},
        )
        if result.ok:
            logger.info("LINE reply delivered")
        return result

    def create_rich_menu(self, menu: Optional[dict] = None) -> Result[str]:
        result = self._make_request("POST", "richmenu", menu or TRAVEL_RICH_MENU)
        if not result.ok:
            return Result.failure(result.error, result.error_code)
        rich_menu_id = result.unwrap_or({}).get("richMenuId")
        if not rich_menu_id:
            return Result.failure("LINE did not return richMenuId", "line_error")
        logger.info(f"Rich menu created: {rich_menu_id}")
        return Result.success(rich_menu_id)

    def set_default_rich_menu(self, rich_menu_id: str) -> Result[dict]:
        return self._make_request("POST", f"user/all/richmenu/{rich_menu_id}")

    def list_rich_menus(self) -> Result[list]:
        result = self._make_request("GET", "richmenu/list")
        if not result.ok:
            return Result.failure(result.error, result.error_code)
        return Result.success(result.unwrap_or({}).get("richmenus", []))

    def delete_rich_menu(self, rich_menu_id: str) -> Result[dict]:
        return self._make_request("DELETE", f"richmenu/{rich_menu_id}")
