"""Native Gemini API client."""
from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict

import httpx

logger = logging.getLogger(__name__)


@dataclass
class GeminiResult:
    """Result from a Gemini API call."""
    text: str = ""
    ok: bool = True
    error: str | None = None
    duration_ms: float = 0.0


class GeminiClient:
    """Gemini generateContent client using httpx."""

    MODEL_MAP = {
        "2.5-flash": "gemini-2.5-flash",
        "2.5-pro": "gemini-2.5-pro",
        "2.0-flash": "gemini-2.0-flash",
        "1.5-flash": "gemini-1.5-flash",
        "1.5-pro": "gemini-1.5-pro",
    }

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 120.0,
    ) -> None:
        self.api_key = api_key if api_key is not None else os.environ.get("GEMINI_API_KEY", "")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def generate(
        self,
        prompt: str,
        model: str = "2.5-flash",
        system: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> GeminiResult:
        if not self.api_key:
            return GeminiResult(ok=False, error="GEMINI_API_KEY not set")

        model_id = self.MODEL_MAP.get(model, model)
        url = f"{self.base_url}/models/{model_id}:generateContent"

        body: Dict[str, Any] = {
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {},
        }
        if temperature is not None:
            body["generationConfig"]["temperature"] = temperature
        if max_tokens is not None:
            body["generationConfig"]["maxOutputTokens"] = max_tokens
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}

        start = time.perf_counter()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(url, json=body, headers={"x-goog-api-key": self.api_key})

            duration_ms = (time.perf_counter() - start) * 1000

            if response.status_code != 200:
                return GeminiResult(
                    ok=False,
                    error=f"HTTP {response.status_code}: {response.text[:500]}",
                    duration_ms=duration_ms,
                )

            data = response.json()
            candidates = data.get("candidates", [])
            if not candidates:
                return GeminiResult(
                    ok=False,
                    error="No candidates in response",
                    duration_ms=duration_ms,
                )

            parts = candidates[0].get("content", {}).get("parts", [])
            text = "".join(p.get("text", "") for p in parts)

            return GeminiResult(text=text, ok=True, duration_ms=duration_ms)

        except httpx.TimeoutException:
            duration_ms = (time.perf_counter() - start) * 1000
            return GeminiResult(
                ok=False,
                error=f"Gemini API timeout after {self.timeout}s",
                duration_ms=duration_ms,
            )
        except (httpx.HTTPError, ValueError, AttributeError, TypeError) as e:
            duration_ms = (time.perf_counter() - start) * 1000
            logger.debug("Gemini call failed", exc_info=True)
            return GeminiResult(ok=False, error=str(e), duration_ms=duration_ms)
