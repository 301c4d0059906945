"""Chat model client with retry logic."""
import logging
import time
from typing import Optional

import httpx
from langchain_openai import ChatOpenAI
from tenacity import before_sleep_log, retry, stop_after_attempt, wait_exponential

from text2rule.utils.config import Config, config as default_config
from text2rule.utils.llm_stats import LLMStatistics

logger = logging.getLogger(__name__)


class TransformError(RuntimeError):
    """Raised when the language model cannot be reached after retries."""
    pass


def create_http_client(settings: Optional[Config] = None) -> httpx.AsyncClient:
    settings = settings or default_config
    return httpx.AsyncClient(
        timeout=httpx.Timeout(float(settings.LLM_TIMEOUT), connect=30.0),
        limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
    )


def create_chat_model(
    settings: Optional[Config] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> ChatOpenAI:
    """Build the chat model for any OpenAI-compatible endpoint."""
    settings = settings or default_config
    http_client = http_client or create_http_client(settings)
    return ChatOpenAI(
        model=settings.LLM_MODEL,
        temperature=settings.LLM_TEMPERATURE,
        max_tokens=settings.LLM_MAX_TOKENS,
        max_retries=0,  # tenacity owns retries
        request_timeout=settings.LLM_TIMEOUT,
        http_async_client=http_client,
        api_key=settings.OPENAI_API_KEY or None,
        base_url=settings.OPENAI_BASE_URL,
    )


class LLMClient:
    """Thin async wrapper: prompt in, response text out."""

    def __init__(
        self,
        llm: Optional[ChatOpenAI] = None,
        settings: Optional[Config] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings or default_config
        # The client closes only the HTTP client it was given or built for its own model
        self.http_client = http_client
        if llm is None:
            self.http_client = http_client or create_http_client(self.settings)
            llm = create_chat_model(self.settings, self.http_client)
        self.llm = llm
        self.stats = LLMStatistics()

    @property
    def model_name(self) -> str:
        return getattr(self.llm, "model_name", None) or self.settings.LLM_MODEL

    async def aclose(self) -> None:
        """Release the HTTP connection pool."""
        if self.http_client is not None and not self.http_client.is_closed:
            await self.http_client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _invoke(self, prompt: str):
        return await self.llm.ainvoke(prompt)

    async def complete(self, prompt: str, stage: str = None) -> str:
        """
        Send ``prompt`` and return the response text.

        Raises:
            TransformError: if every attempt fails
        """
        start = time.time()
        try:
            response = await self._invoke(prompt)
        except Exception as e:
            self.stats.add_call(False, stage, time.time() - start)
            raise TransformError(f"LLM call failed for stage {stage}: {e}") from e

        self.stats.add_call(True, stage, time.time() - start)
        content = response.content if hasattr(response, "content") else str(response)
        if isinstance(content, list):
            content = "".join(
                part.get("text", "") if isinstance(part, dict) else str(part) for part in content
            )
        return content
