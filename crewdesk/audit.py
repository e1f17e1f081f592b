"""Structured audit logging for crewdesk requests."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict
import json
import logging
import time

from crewdesk.config import Config

logger = logging.getLogger(__name__)


@dataclass
class AuditLog:
    path: Path

    @classmethod
    def from_config(cls, config: Config) -> "AuditLog | None":
        cfg = config.audit
        if not cfg.get("enabled", False):
            return None
        path = cfg.get("path") or (config.data_dir / "audit.jsonl")
        return cls(Path(path).expanduser())

    def log(self, event: str, data: Dict[str, Any] | None = None) -> None:
        payload = {
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S"),
            "event": event,
            "data": data or {},
        }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(json.dumps(payload) + "\n")
        except OSError:
            logger.warning(f"Audit write failed for {event}", exc_info=True)
