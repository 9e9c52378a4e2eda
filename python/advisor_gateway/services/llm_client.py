# LLM Client - non-streaming OpenAI-compatible completions for the advisor call sites
# The reconcilers only see generate(prompt, params) -> text; any callable with that
# signature can stand in for this client.

import os
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from .demo_mode import DemoMode

logger = logging.getLogger(__name__)

LLM_BASE_URL = os.getenv("LLM_BASE_URL", "https://api.openai.com/v1")
LLM_API_KEY = os.getenv("LLM_API_KEY")
LLM_MODEL = os.getenv("LLM_MODEL", "gpt-4o-mini")
LLM_TIMEOUT_S = float(os.getenv("LLM_TIMEOUT_S", "30"))


class UpstreamError(Exception):
    """The provider answered, but not with a usable completion"""


@dataclass(frozen=True)
class GenerationParams:
    call_site: str
    temperature: float
    max_tokens: int


CALL_SITE_PARAMS: Dict[str, GenerationParams] = {
    "matching": GenerationParams("matching", 0.0, 8192),
    "suggestions": GenerationParams("suggestions", 0.7, 2048),
    "tasks": GenerationParams("tasks", 0.3, 4000),
    "chat": GenerationParams("chat", 0.7, 2000),
    "profile": GenerationParams("profile", 0.1, 2048),
}


class LLMClient:
    """
    Thin client over POST {base}/chat/completions.

    - Persistent httpx.AsyncClient, released by close()
    - Returns the first choice's message content as raw text
    - DEMO_MODE short-circuits to canned responses
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        request_timeout_s: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or LLM_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else LLM_API_KEY
        self.model = model or LLM_MODEL
        self.request_timeout_s = request_timeout_s or LLM_TIMEOUT_S

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        self.client = httpx.AsyncClient(timeout=self.request_timeout_s, headers=headers, transport=transport)

    async def generate(self, prompt: str, params: GenerationParams) -> str:
        """Raw completion text for `prompt`; raises httpx.HTTPError or UpstreamError"""
        canned = DemoMode.canned_response(params.call_site)
        if canned is not None:
            logger.info(f"🎬 Demo mode completion for {params.call_site}")
            return canned

        payload = {
            "model": self.model,
            "stream": False,
            "temperature": params.temperature,
            "max_tokens": params.max_tokens,
            "messages": [{"role": "user", "content": prompt}],
        }
        response = await self.client.post(f"{self.base_url}/chat/completions", json=payload)
        response.raise_for_status()

        try:
            result = response.json()
        except ValueError as e:
            raise UpstreamError(f"{params.call_site}: provider returned non-JSON body") from e

        choices = result.get("choices") if isinstance(result, dict) else None
        content = None
        if isinstance(choices, list) and choices and isinstance(choices[0], dict):
            message = choices[0].get("message")
            if isinstance(message, dict):
                content = message.get("content")
        if not isinstance(content, str):
            raise UpstreamError(f"{params.call_site}: completion has no message content")
        return content

    async def close(self):
        """Clean up the persistent HTTP client"""
        await self.client.aclose()
