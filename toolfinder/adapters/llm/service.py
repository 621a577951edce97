"""
LLM Service - Unified language model interface.

Routes between:
- Gemini REST (OAuth access token -> token owner's quota)
- Ollama (local model, no auth)

Architecture:
    llm_provider == "gemini" and token configured -> Gemini
    Otherwise                                       -> Ollama
    Gemini failure                                  -> Ollama fallback
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from toolfinder.config import ErrorCode, LLMError, Settings, get_settings

logger = logging.getLogger(__name__)

__all__ = ["LLMResponse", "LLMService", "get_llm_service"]

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


@dataclass
class LLMResponse:
    """Response from LLM generation."""

    text: str
    model: str
    provider: str  # "gemini" or "ollama"
    tokens_used: int | None = None


class LLMService:
    """
    Unified LLM service supporting Gemini (OAuth token) and Ollama (fallback).

    Example:
        >>> llm = LLMService(access_token="ya29.xxx")
        >>> response = await llm.generate("Summarize this tool")

        >>> llm = LLMService()  # Ollama
        >>> text = await llm.complete("Summarize this tool")
    """

    def __init__(
        self,
        settings: Settings | None = None,
        access_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_wait: float = 0.5,
    ) -> None:
        """
        Initialize LLM service.

        Args:
            settings: Application settings (cached settings if None)
            access_token: Google OAuth access token; overrides settings
            transport: Custom httpx transport (tests)
            retry_wait: Base delay for exponential backoff between retries
        """
        self.settings = settings or get_settings()
        self.access_token = access_token or self.settings.gemini_access_token
        self.model = self.settings.gemini_model
        self._transport = transport
        self._retry_wait = retry_wait

        if self.access_token and self.settings.llm_provider == "gemini":
            self.provider = "gemini"
            logger.debug("LLM: Using Gemini with OAuth token")
        else:
            self.provider = "ollama"
            logger.debug("LLM: Using Ollama")

    async def complete(self, prompt: str) -> str:
        """
        Generate a completion and return its text.

        Raises:
            LLMError: Backend unavailable or empty response
        """
        response = await self.generate(prompt)
        if not response.text.strip():
            raise LLMError(
                "Empty completion",
                {"provider": response.provider},
                code=ErrorCode.LLM_INVALID_RESPONSE,
            )
        return response.text

    async def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """
        Generate text response.

        Args:
            prompt: User prompt
            system_instruction: System prompt
            temperature: Override default temperature

        Returns:
            LLMResponse with generated text
        """
        if self.provider == "gemini":
            try:
                return await self._generate_gemini(prompt, system_instruction, temperature)
            except LLMError as e:
                logger.warning("Gemini failed, falling back to Ollama: %s", e)
                return await self._generate_ollama(prompt, system_instruction, temperature)
        return await self._generate_ollama(prompt, system_instruction, temperature)

    async def _generate_gemini(
        self,
        prompt: str,
        system_instruction: str | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate using Gemini REST with the OAuth token."""
        if not self.access_token:
            raise LLMError("No access token for Gemini", code=ErrorCode.LLM_AUTH_FAILED)

        contents = []
        if system_instruction:
            contents.append({"role": "user", "parts": [{"text": system_instruction}]})
            contents.append({"role": "model", "parts": [{"text": "Understood."}]})
        contents.append({"role": "user", "parts": [{"text": prompt}]})

        body = {
            "contents": contents,
            "generationConfig": {
                "temperature": self._temperature(temperature),
            },
        }

        response = await self._post(
            GEMINI_URL.format(model=self.model),
            body,
            headers={"Authorization": f"Bearer {self.access_token}"},
            provider="gemini",
        )
        data = _json(response)

        text = ""
        candidates = data.get("candidates", [])
        if candidates:
            parts = candidates[0].get("content", {}).get("parts", [])
            if parts:
                text = parts[0].get("text", "")

        return LLMResponse(
            text=text,
            model=self.model,
            provider="gemini",
            tokens_used=data.get("usageMetadata", {}).get("totalTokenCount"),
        )

    async def _generate_ollama(
        self,
        prompt: str,
        system_instruction: str | None = None,
        temperature: float | None = None,
    ) -> LLMResponse:
        """Generate using local Ollama."""
        full_prompt = prompt
        if system_instruction:
            full_prompt = f"{system_instruction}\n\n{prompt}"

        body = {
            "model": self.settings.ollama_model,
            "prompt": full_prompt,
            "stream": False,
            "options": {"temperature": self._temperature(temperature)},
        }

        response = await self._post(
            f"{self.settings.ollama_url.rstrip('/')}/api/generate", body, provider="ollama"
        )
        data = _json(response)

        return LLMResponse(
            text=data.get("response", ""),
            model=self.settings.ollama_model,
            provider="ollama",
            tokens_used=data.get("eval_count"),
        )

    async def _post(
        self,
        url: str,
        body: dict[str, Any],
        provider: str,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """POST with retry on transport errors; non-200 becomes LLMError."""
        retrying = AsyncRetrying(
            retry=retry_if_exception_type(httpx.TransportError),
            stop=stop_after_attempt(self.settings.llm_max_retries + 1),
            wait=wait_exponential(multiplier=self._retry_wait, max=4),
            reraise=True,
        )

        try:
            async with httpx.AsyncClient(
                transport=self._transport,
                timeout=self.settings.llm_timeout_seconds,
            ) as client:
                async for retry_state in retrying:
                    with retry_state:
                        response = await client.post(url, json=body, headers=headers)
        except httpx.ConnectError as e:
            hint = "Run 'ollama serve' in a terminal" if provider == "ollama" else None
            raise LLMError(f"{provider} not reachable: {e}", {"hint": hint}) from e
        except httpx.HTTPError as e:
            raise LLMError(f"{provider} request failed: {e}") from e

        if response.status_code == 429:
            raise LLMError(f"{provider} quota exceeded", code=ErrorCode.LLM_RATE_LIMITED)
        if response.status_code in (401, 403):
            raise LLMError(f"{provider} rejected credentials", code=ErrorCode.LLM_AUTH_FAILED)
        if response.status_code != 200:
            logger.error("%s error: %s %s", provider, response.status_code, response.text[:200])
            raise LLMError(f"{provider} API error: {response.status_code}")

        return response

    def _temperature(self, override: float | None) -> float:
        return self.settings.gemini_temperature if override is None else override


def get_llm_service(settings: Settings | None = None) -> LLMService:
    """
    Get LLM service configured from settings.

    Returns:
        LLMService using Gemini when configured with a token, Ollama otherwise
    """
    return LLMService(settings=settings)


def _json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as e:
        raise LLMError("Response is not JSON", code=ErrorCode.LLM_INVALID_RESPONSE) from e
    if not isinstance(data, dict):
        raise LLMError("Unexpected response shape", code=ErrorCode.LLM_INVALID_RESPONSE)
    return data
