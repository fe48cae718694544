from typing import List, Optional

import httpx

from app.logging_config import get_logger
from app.services.llm.base import LLMProvider, LLMProviderError, LLMResponse

logger = get_logger("llm.openai")

DEFAULT_BASE_URL = "https://api.openai.com/v1/chat/completions"


def _error_code(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    error = data.get("error") if isinstance(data, dict) else None
    if isinstance(error, dict):
        return error.get("code") or error.get("type")
    return None


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions provider."""

    def __init__(
        self,
        api_key: str,
        default_model: str = "gpt-4o-mini",
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = 60.0,
    ):
        self.api_key = api_key
        self.default_model = default_model
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds

    def generate(
        self,
        messages: List[dict],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 300,
        timeout_seconds: Optional[float] = None,
    ) -> LLMResponse:
        """Generate response from OpenAI."""

        model = model or self.default_model

        timeout = timeout_seconds if timeout_seconds is not None else self.timeout_seconds
        with httpx.Client(timeout=timeout) as client:
            payload = {
                "model": model,
                "messages": messages,
                "temperature": temperature,
                "max_completion_tokens": max_tokens,
            }
            logger.debug(f"OpenAI request: model={model}, messages_count={len(messages)}")

            response = client.post(
                self.base_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )

            logger.debug(f"OpenAI response status: {response.status_code}")

            if response.status_code != 200:
                logger.error(f"OpenAI error: {response.text}")
                raise LLMProviderError(
                    f"OpenAI API error: {response.status_code} - {response.text}",
                    status_code=response.status_code,
                    code=_error_code(response),
                )

            data = response.json()

            content = ""
            if data.get("choices"):
                message = data["choices"][0].get("message", {})
                content = message.get("content") or ""
            logger.debug(f"OpenAI content: {content[:100] if content else 'EMPTY'}")

            return LLMResponse(
                content=content,
                model=data.get("model", model),
                usage=data.get("usage"),
            )
