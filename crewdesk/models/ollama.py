"""Minimal Ollama client for the local model server."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional
from urllib.parse import urlparse
import socket
import time

import httpx

DEFAULT_BASE_URL = "http://localhost:11434"


@dataclass
class OllamaResult:
    text: str
    duration_ms: float
    ok: bool
    error: Optional[str] = None


class OllamaClient:
    def __init__(self, base_url: str = DEFAULT_BASE_URL, timeout: float = 120.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def reachable(self, probe_timeout: float = 0.5) -> bool:
        """TCP-connect probe against the server's host and port."""
        parsed = urlparse(self.base_url)
        host = parsed.hostname or "localhost"
        port = parsed.port or (443 if parsed.scheme == "https" else 80)
        try:
            with socket.create_connection((host, port), timeout=probe_timeout):
                return True
        except OSError:
            return False

    def generate(
        self,
        model: str,
        prompt: str,
        system: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> OllamaResult:
        payload: Dict[str, Any] = {
            "model": model,
            "prompt": prompt,
            "stream": False,
            "options": {},
        }
        if temperature is not None:
            payload["options"]["temperature"] = temperature
        if system:
            payload["system"] = system
        if max_tokens is not None:
            payload["options"]["num_predict"] = max_tokens

        start = time.perf_counter()
        try:
            with httpx.Client(timeout=self.timeout) as client:
                resp = client.post(f"{self.base_url}/api/generate", json=payload)
            duration = (time.perf_counter() - start) * 1000
            if resp.status_code != 200:
                return OllamaResult(
                    text="",
                    duration_ms=duration,
                    ok=False,
                    error=f"HTTP {resp.status_code}: {resp.text[:500]}",
                )
            data = resp.json()
            text = data.get("response") if isinstance(data, dict) else None
            if not isinstance(text, str):
                return OllamaResult(text="", duration_ms=duration, ok=False, error="No response field in Ollama reply")
            return OllamaResult(text=text, duration_ms=duration, ok=True)
        except httpx.TimeoutException:
            duration = (time.perf_counter() - start) * 1000
            return OllamaResult(text="", duration_ms=duration, ok=False, error=f"Ollama timeout after {self.timeout}s")
        except (httpx.HTTPError, ValueError) as exc:
            duration = (time.perf_counter() - start) * 1000
            return OllamaResult(text="", duration_ms=duration, ok=False, error=str(exc))
