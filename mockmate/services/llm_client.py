"""
LLM client wrapper

One AsyncOpenAI client per process, guarded by a token-bucket rate limiter
and a concurrency limiter.
"""
import asyncio
import time
from threading import Lock
from typing import Any, Dict, List, Optional

from loguru import logger
from openai import AsyncOpenAI

from mockmate.core.config import settings


class RateLimiter:
    """Token bucket refilled at `rate` tokens per minute"""

    def __init__(self, rate: int):
        self.rate = rate
        self.tokens = rate
        self.last_update = time.time()
        self._lock = Lock()

    def acquire(self) -> bool:
        with self._lock:
            now = time.time()
            elapsed = now - self.last_update
            self.tokens = min(self.rate, self.tokens + elapsed * (self.rate / 60.0))
            self.last_update = now
            if self.tokens >= 1:
                self.tokens -= 1
                return True
            return False

    async def wait_and_acquire(self) -> None:
        while not self.acquire():
            await asyncio.sleep(0.1)


class ConcurrencyLimiter:
    """Caps in-flight LLM requests"""

    def __init__(self, max_concurrency: int):
        self._semaphore = asyncio.Semaphore(max_concurrency)

    async def acquire(self):
        await self._semaphore.acquire()

    def release(self):
        self._semaphore.release()


class LLMClient:
    """
    Shared LLM client

    Singleton; the API key, model and limits come from settings.
    """

    _instance: Optional["LLMClient"] = None
    _lock = Lock()

    def __new__(cls):
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if getattr(self, "_initialized", False):
            return

        self.model = settings.llm_model
        self.api_key = settings.llm_api_key
        self.base_url = settings.llm_base_url
        self.temperature = settings.llm_temperature
        self.timeout = settings.llm_timeout

        self._client: Optional[AsyncOpenAI] = None
        if self.is_configured():
            self._client = AsyncOpenAI(
                api_key=self.api_key,
                base_url=self.base_url or None,
                timeout=self.timeout,
            )

        self._rate_limiter = RateLimiter(settings.llm_rate_limit)
        self._concurrency_limiter = ConcurrencyLimiter(settings.llm_max_concurrency)

        self._initialized = True
        logger.info(
            "LLMClient initialized: model={}, configured={}, max_concurrency={}, rate_limit={}/min",
            self.model,
            self.is_configured(),
            settings.llm_max_concurrency,
            settings.llm_rate_limit,
        )

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: Optional[float] = None,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Send a chat completion and return the text reply"""
        if self._client is None:
            raise RuntimeError("LLM API key is not configured")

        await self._rate_limiter.wait_and_acquire()
        await self._concurrency_limiter.acquire()
        try:
            kwargs: Dict[str, Any] = {
                "model": model or self.model,
                "messages": messages,
                "temperature": temperature if temperature is not None else self.temperature,
            }
            if max_tokens:
                kwargs["max_tokens"] = max_tokens
            response = await self._client.chat.completions.create(**kwargs)
            if not response or not response.choices:
                raise ValueError("LLM returned an empty response")
            content = response.choices[0].message.content
            if content is None:
                raise ValueError("LLM returned no content")
            return content.strip()
        except Exception as exc:
            logger.error("LLM call failed: {}", exc)
            raise
        finally:
            self._concurrency_limiter.release()

    def is_configured(self) -> bool:
        """Whether an API key is set"""
        return bool(self.api_key) and self.api_key != "your-api-key-here"

    def get_status(self) -> Dict[str, Any]:
        return {
            "model": self.model,
            "base_url": self.base_url,
            "api_key_configured": self.is_configured(),
            "temperature": self.temperature,
            "timeout": self.timeout,
            "max_concurrency": settings.llm_max_concurrency,
            "rate_limit": settings.llm_rate_limit,
        }


def get_llm_client() -> LLMClient:
    """Return the LLMClient singleton"""
    return LLMClient()
