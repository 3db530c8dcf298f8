# bizhub/services/llm_client.py

from datetime import datetime, timezone
from functools import lru_cache
from typing import Dict, List, Optional

import httpx
from loguru import logger
from pydantic import BaseModel

from bizhub.core.config import settings


class LLMResponse(BaseModel):
    content: Optional[str] = None
    model: str
    error: Optional[str] = None


class OpenAIClient:
    """Minimal chat-completions client over httpx."""

    provider_name = "OpenAI"

    def __init__(self, api_key: Optional[str] = None, api_url: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.OPENAI_API_KEY
        self.api_url = api_url or settings.OPENAI_API_URL
        self.aclient: Optional[httpx.AsyncClient] = None
        if not self.api_key:
            logger.warning("OpenAI API key not configured. LLM features disabled.")
            return
        self.headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        self.aclient = httpx.AsyncClient(
            timeout=30.0,
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=10),
            http2=True,
        )
        logger.info(f"OpenAI client initialized for API key ...{self.api_key[-4:]}")

    @property
    def enabled(self) -> bool:
        return self.aclient is not None

    async def get_completion(
        self,
        messages: List[Dict[str, str]],
        model: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 150,
    ) -> LLMResponse:
        model = model or settings.OPENAI_CHAT_MODEL
        if not self.enabled:
            return LLMResponse(model=model, error="OpenAI client not initialized.")

        log = logger.bind(service="LLMClient", provider=self.provider_name, model=model)
        payload = {"model": model, "messages": messages, "temperature": temperature, "max_tokens": max_tokens}
        request_time = datetime.now(timezone.utc)
        try:
            response = await self.aclient.post(self.api_url, headers=self.headers, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as e:
            log.error(f"OpenAI API returned HTTP {e.response.status_code}: {e.response.text[:200]}")
            return LLMResponse(model=model, error=f"HTTP {e.response.status_code}")
        except httpx.RequestError as e:
            log.error(f"Network error calling OpenAI: {e}")
            return LLMResponse(model=model, error=str(e))
        except ValueError as e:
            log.error(f"OpenAI returned invalid JSON: {e}")
            return LLMResponse(model=model, error="Invalid JSON response")

        duration = (datetime.now(timezone.utc) - request_time).total_seconds()
        choices = data.get("choices") or []
        content = (choices[0].get("message") or {}).get("content") if choices else None
        if not content:
            log.warning("OpenAI response contained no content.")
            return LLMResponse(model=model, error="Empty completion")
        log.debug(f"OpenAI completion received in {duration:.3f}s")
        return LLMResponse(model=data.get("model", model), content=content.strip())

    async def aclose(self):
        if self.aclient is not None:
            await self.aclient.aclose()


@lru_cache()
def get_llm_client_instance() -> OpenAIClient:
    return OpenAIClient()


async def get_llm_client() -> OpenAIClient:
    return get_llm_client_instance()
