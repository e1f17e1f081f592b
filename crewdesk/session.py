"""Per-session counters shown by front ends."""
from __future__ import annotations

from dataclasses import dataclass, field
import time

CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    return len(text) // CHARS_PER_TOKEN


@dataclass
class Session:
    messages: int = 0
    tokens: int = 0
    started_at: float = field(default_factory=time.time)

    def record(self, text: str) -> None:
        self.messages += 1
        self.tokens += estimate_tokens(text)

    @property
    def elapsed_seconds(self) -> float:
        return max(0.0, time.time() - self.started_at)

    def to_dict(self) -> dict:
        return {
            "messages": self.messages,
            "tokens": self.tokens,
            "elapsed_seconds": round(self.elapsed_seconds, 1),
        }
