"""Map failures on the chat path to the message the user sees.

Rules are checked top to bottom and the first match wins. The order matters:
insufficient_quota arrives as HTTP 429 and must not be reported as a rate limit.
"""

from dataclasses import dataclass
from typing import Callable, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError

MSG_DEFAULT = "抱歉，我目前無法處理您的請求，請稍後再試。"
MSG_POSTBACK_FAILED = "抱歉，處理您的請求時發生錯誤，請稍後再試。"

NETWORK_ERROR_CODES = {"ECONNREFUSED", "ETIMEDOUT", "ENOTFOUND", "ECONNRESET"}


@dataclass(frozen=True)
class ErrorFacts:
    code: Optional[str]
    status: Optional[int]
    text: str
    exc: BaseException


@dataclass(frozen=True)
class ErrorRule:
    name: str
    matches: Callable[[ErrorFacts], bool]
    message: str


def _status_of(exc: BaseException) -> Optional[int]:
    status = getattr(exc, "status_code", None) or getattr(exc, "status", None)
    if status is None and isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None


def _code_of(exc: BaseException) -> Optional[str]:
    code = getattr(exc, "code", None)
    return code if isinstance(code, str) else None


def extract_facts(exc: BaseException) -> ErrorFacts:
    return ErrorFacts(code=_code_of(exc), status=_status_of(exc), text=str(exc).lower(), exc=exc)


def _contains(*needles: str) -> Callable[[ErrorFacts], bool]:
    return lambda facts: any(needle in facts.text for needle in needles)


def _is_quota(facts: ErrorFacts) -> bool:
    return facts.code == "insufficient_quota" or _contains("quota", "billing")(facts)


def _is_auth(facts: ErrorFacts) -> bool:
    return (
        facts.code == "invalid_api_key"
        or _contains("api key", "authentication", "invalid")(facts)
        or facts.status in (401, 403)
    )


def _is_rate_limit(facts: ErrorFacts) -> bool:
    return facts.status == 429 or _contains("rate limit")(facts)


def _is_upstream(facts: ErrorFacts) -> bool:
    return facts.status in (500, 502, 503, 504)


def _is_network(facts: ErrorFacts) -> bool:
    return (
        facts.code in NETWORK_ERROR_CODES
        or isinstance(facts.exc, httpx.TransportError)
        or _contains("network", "timeout", "connection", "econnrefused", "etimedout")(facts)
    )


def _is_storage(facts: ErrorFacts) -> bool:
    return isinstance(facts.exc, SQLAlchemyError) or _contains("database_url", "database", "sqlalchemy", "psycopg")(
        facts
    )


def _is_configuration(facts: ErrorFacts) -> bool:
    return _contains("openai_api_key", "環境變數", "environment variable")(facts)


ERROR_RULES = (
    ErrorRule("quota", _is_quota, "抱歉，服務配額已用盡。請前往 OpenAI 平台檢查帳號餘額，或聯繫管理員。"),
    ErrorRule("auth", _is_auth, "抱歉，服務認證出現問題，請檢查 API Key 是否正確設定。"),
    ErrorRule("rate_limit", _is_rate_limit, "抱歉，服務目前使用量較大，請稍候片刻後再試。"),
    ErrorRule("upstream", _is_upstream, "抱歉，OpenAI 服務暫時無法使用，請稍後再試。"),
    ErrorRule("network", _is_network, "抱歉，網路連接出現問題，請檢查網路連線後再試。"),
    ErrorRule("storage", _is_storage, "抱歉，資料庫服務暫時無法使用，請稍後再試。"),
    ErrorRule(
        "configuration",
        _is_configuration,
        "抱歉，服務設定有誤，請檢查 .env 檔案中的 OPENAI_API_KEY 是否正確設定。",
    ),
)


def match_error_rule(exc: BaseException) -> Optional[ErrorRule]:
    facts = extract_facts(exc)
    for rule in ERROR_RULES:
        if rule.matches(facts):
            return rule
    return None


def classify_error(exc: BaseException) -> str:
    rule = match_error_rule(exc)
    return rule.message if rule else MSG_DEFAULT
