"""
Behavioural summary of a user's messages via the Gemini API.

One attempt per request. A missing API key, an HTTP error or a transport
failure all come back as a readable string for the chat, never as an
exception.
"""

import logging
import time
from typing import Optional

import httpx

from chatstats.config import Settings

logger = logging.getLogger(__name__)

NO_KEY_TEXT = "GEMINI_API_KEY не задан. Укажите ключ в .env."
NO_DATA_TEXT = "Нет данных для анализа."

PROMPT_TEMPLATE = """
Проанализируй сообщения пользователя и опиши:
- стиль общения
- основные темы
- активность
- тональность
- особенности

Сообщения:
{messages}
"""


def build_prompt(messages: list[str]) -> str:
    return PROMPT_TEMPLATE.format(messages="\n".join(messages))


def extract_text(data: dict) -> Optional[str]:
    """First candidate text of a generateContent response."""
    try:
        return data["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        return None


class GeminiAnalyzer:
    def __init__(self, config: Settings, client: Optional[httpx.AsyncClient] = None):
        self._config = config
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self._config.gemini_timeout,
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )
            logger.debug("Created Gemini httpx client")
        return self._client

    async def close(self):
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            logger.info("Gemini httpx client closed")

    async def analyze(self, messages: list[str]) -> str:
        api_key = self._config.gemini_api_key
        if not api_key:
            return NO_KEY_TEXT

        model = self._config.gemini_model
        url = f"{self._config.gemini_base_url}/models/{model}:generateContent"
        payload = {"contents": [{"parts": [{"text": build_prompt(messages)}]}]}

        start_time = time.time()
        logger.info(f"[GEMINI] Запрос к {model} | messages={len(messages)}")
        try:
            r = await self._get_client().post(url, params={"key": api_key}, json=payload)
        except httpx.RequestError as e:
            logger.warning(f"[GEMINI REQUEST ERROR] model={model} | error={type(e).__name__}: {e}")
            return f"Ошибка Gemini API: {type(e).__name__}"

        duration = time.time() - start_time
        if r.is_error:
            logger.error(f"[GEMINI HTTP ERROR] model={model} | status={r.status_code} | time={duration:.2f}s")
            return f"Ошибка Gemini API: {r.status_code} {r.reason_phrase}\n{r.text}"

        try:
            data = r.json()
        except ValueError:
            logger.error(f"[GEMINI] non-JSON response | status={r.status_code}")
            return NO_DATA_TEXT

        logger.info(f"[GEMINI OK] model={model} | time={duration:.2f}s")
        return extract_text(data) or NO_DATA_TEXT
