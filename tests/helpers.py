"""Test doubles shared by the test modules."""
from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional, Union


class FakeProvider:
    """In-memory provider. ``reply`` may be a string or a function of the prompt."""

    def __init__(
        self,
        name: str,
        kind: str = "cli",
        reply: Union[str, Callable[[str], str]] = "ok",
        available: bool = True,
        error: Optional[Exception] = None,
        supports_streaming: bool = True,
        requires_credential: bool = False,
        delay: float = 0.0,
    ) -> None:
        self.name = name
        self.kind = kind
        self.reply = reply
        self.available = available
        self.error = error
        self.supports_streaming = supports_streaming
        self.requires_credential = requires_credential
        self.delay = delay
        self.calls: List[str] = []
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self.available

    def generate(self, prompt: str) -> str:
        with self._lock:
            self.calls.append(prompt)
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply(prompt) if callable(self.reply) else self.reply

    def generate_streaming(self, prompt: str, sink: Callable[[str], None]) -> str:
        text = self.generate(prompt)
        if not self.supports_streaming:
            sink(text)
            return text
        pieces = text.splitlines(keepends=True) or [text]
        for piece in pieces:
            sink(piece)
        return "".join(pieces)


def mock_http_client(mock_client_cls, status_code=200, payload=None, text=""):
    """Wire a patched ``httpx.Client`` class to return one canned response."""
    from unittest.mock import MagicMock

    mock_response = MagicMock()
    mock_response.status_code = status_code
    mock_response.text = text
    mock_response.json.return_value = payload
    mock_client = MagicMock()
    mock_client.__enter__ = MagicMock(return_value=mock_client)
    mock_client.__exit__ = MagicMock(return_value=False)
    mock_client.post.return_value = mock_response
    mock_client_cls.return_value = mock_client
    return mock_client
