"""OpenAI and Anthropic chat clients."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

ANTHROPIC_VERSION = "2023-06-01"


@dataclass
class ApiResult:
    text: str = ""
    ok: bool = True
    error: Optional[str] = None
    duration_ms: float = 0.0


class OpenAIClient:
    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.openai.com/v1",
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def generate(
        self,
        prompt: str,
        model: str = "gpt-4o-mini",
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ApiResult:
        if not self.api_key:
            return ApiResult(ok=False, error="OpenAI API key not set")

        body: Dict[str, Any] = {
            "model": model,
            "messages": [{"role": "user", "content": prompt}],
        }
        if temperature is not None:
            body["temperature"] = temperature
        if max_tokens is not None:
            body["max_tokens"] = max_tokens

        start = time.perf_counter()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/chat/completions",
                    json=body,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            duration_ms = (time.perf_counter() - start) * 1000
            if not 200 <= response.status_code < 300:
                return ApiResult(
                    ok=False,
                    error=f"HTTP {response.status_code}: {response.text[:500]}",
                    duration_ms=duration_ms,
                )
            data = response.json()
            text = data["choices"][0]["message"]["content"]
            if not isinstance(text, str):
                return ApiResult(ok=False, error="Invalid response format", duration_ms=duration_ms)
            return ApiResult(text=text, duration_ms=duration_ms)
        except httpx.TimeoutException:
            duration_ms = (time.perf_counter() - start) * 1000
            return ApiResult(ok=False, error=f"OpenAI API timeout after {self.timeout}s", duration_ms=duration_ms)
        except (KeyError, IndexError, TypeError):
            duration_ms = (time.perf_counter() - start) * 1000
            return ApiResult(ok=False, error="Invalid response format", duration_ms=duration_ms)
        except (httpx.HTTPError, ValueError) as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.debug("OpenAI call failed", exc_info=True)
            return ApiResult(ok=False, error=str(e), duration_ms=duration_ms)


class AnthropicClient:
    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.anthropic.com/v1",
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key or ""
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def generate(
        self,
        prompt: str,
        model: str = "claude-3-5-sonnet-20241022",
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ApiResult:
        if not self.api_key:
            return ApiResult(ok=False, error="Anthropic API key not set")

        # The messages endpoint rejects requests without max_tokens.
        body: Dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens or 4096,
            "messages": [{"role": "user", "content": prompt}],
        }
        if temperature is not None:
            body["temperature"] = temperature

        start = time.perf_counter()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/messages",
                    json=body,
                    headers={
                        "x-api-key": self.api_key,
                        "anthropic-version": ANTHROPIC_VERSION,
                    },
                )
            duration_ms = (time.perf_counter() - start) * 1000
            if not 200 <= response.status_code < 300:
                return ApiResult(
                    ok=False,
                    error=f"HTTP {response.status_code}: {response.text[:500]}",
                    duration_ms=duration_ms,
                )
            data = response.json()
            text = data["content"][0]["text"]
            if not isinstance(text, str):
                return ApiResult(ok=False, error="Invalid response format", duration_ms=duration_ms)
            return ApiResult(text=text, duration_ms=duration_ms)
        except httpx.TimeoutException:
            duration_ms = (time.perf_counter() - start) * 1000
            return ApiResult(ok=False, error=f"Anthropic API timeout after {self.timeout}s", duration_ms=duration_ms)
        except (KeyError, IndexError, TypeError):
            duration_ms = (time.perf_counter() - start) * 1000
            return ApiResult(ok=False, error="Invalid response format", duration_ms=duration_ms)
        except (httpx.HTTPError, ValueError) as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.debug("Anthropic call failed", exc_info=True)
            return ApiResult(ok=False, error=str(e), duration_ms=duration_ms)
