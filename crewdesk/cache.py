"""File-backed response cache with per-entry TTL.

One JSON document per (query, model) pair. Writes go through a temp file and
``os.replace`` so concurrent writers never leave a torn entry behind; the last
writer wins. Nothing in here raises to the caller: IO trouble is logged and
treated as a miss.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, Optional
import hashlib
import json
import logging
import os
import tempfile
import time

from crewdesk.config import Config
from crewdesk.errors import CacheIoFailed

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECS = 3600


def default_cache_dir() -> Path:
    override = os.getenv("CREWDESK_CACHE_DIR")
    if override:
        return Path(override).expanduser()
    xdg = os.getenv("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg).expanduser() / "crewdesk"
    return Path.home() / ".cache" / "crewdesk"


def cache_key(query: str, model: str) -> str:
    digest = hashlib.sha256()
    digest.update(query.encode("utf-8"))
    digest.update(b"\0")
    digest.update(model.encode("utf-8"))
    return digest.hexdigest()[:16]


@dataclass
class CacheEntry:
    query: str
    model: str
    response: str
    created_at: int
    ttl_secs: int

    def expired(self, now: float) -> bool:
        return now > self.created_at + self.ttl_secs

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        try:
            return cls(
                query=str(data["query"]),
                model=str(data["model"]),
                response=str(data["response"]),
                created_at=int(data["created_at"]),
                ttl_secs=int(data["ttl_secs"]),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise CacheIoFailed(f"Malformed cache entry: {exc}") from exc


@dataclass
class CacheStats:
    total_entries: int = 0
    expired_entries: int = 0
    total_bytes: int = 0

    @property
    def active_entries(self) -> int:
        return max(0, self.total_entries - self.expired_entries)


class ResponseCache:
    def __init__(
        self,
        directory: str | Path | None = None,
        ttl_secs: int = DEFAULT_TTL_SECS,
        enabled: bool = True,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory).expanduser() if directory else default_cache_dir()
        self.ttl_secs = int(ttl_secs)
        self.enabled = enabled
        self.clock = clock

    @classmethod
    def from_config(cls, config: Config) -> "ResponseCache":
        cfg = config.cache
        return cls(
            directory=cfg.get("directory"),
            ttl_secs=int(cfg.get("ttl_secs", DEFAULT_TTL_SECS)),
            enabled=bool(cfg.get("enabled", True)),
        )

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _entries(self) -> Iterator[Path]:
        if not self.directory.is_dir():
            return iter(())
        return iter(sorted(self.directory.glob("*.json")))

    def _load(self, path: Path) -> CacheEntry:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            raise CacheIoFailed(f"Unreadable cache entry {path.name}: {exc}") from exc
        if not isinstance(data, dict):
            raise CacheIoFailed(f"Unreadable cache entry {path.name}: not an object")
        return CacheEntry.from_dict(data)

    def get(self, query: str, model: str) -> Optional[str]:
        if not self.enabled:
            return None
        path = self._path(cache_key(query, model))
        if not path.exists():
            return None
        try:
            entry = self._load(path)
        except CacheIoFailed as exc:
            logger.debug(f"Cache miss: {exc}")
            return None
        if entry.expired(self.clock()):
            try:
                path.unlink()
            except OSError:
                logger.debug(f"Could not remove expired entry {path.name}", exc_info=True)
            return None
        logger.debug(f"Cache hit for {model}")
        return entry.response

    def set(self, query: str, model: str, response: str) -> None:
        if not self.enabled:
            return
        entry = CacheEntry(
            query=query,
            model=model,
            response=response,
            created_at=int(self.clock()),
            ttl_secs=self.ttl_secs,
        )
        try:
            self._write(self._path(cache_key(query, model)), entry)
        except CacheIoFailed as exc:
            logger.warning(f"Cache write skipped: {exc}")

    def _write(self, path: Path, entry: CacheEntry) -> None:
        tmp_name: Optional[str] = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=".tmp-", suffix=".part")
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(asdict(entry), handle, indent=2)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            raise CacheIoFailed(f"Could not write {path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except OSError:
                    pass

    def clear(self) -> int:
        if not self.enabled:
            return 0
        removed = 0
        for path in self._entries():
            try:
                path.unlink()
                removed += 1
            except OSError:
                logger.warning(f"Could not remove cache entry {path.name}", exc_info=True)
        return removed

    def prune(self) -> int:
        """Remove expired and unreadable entries. Returns how many were removed."""
        if not self.enabled:
            return 0
        now = self.clock()
        removed = 0
        for path in self._entries():
            try:
                stale = self._load(path).expired(now)
            except CacheIoFailed:
                stale = True
            if not stale:
                continue
            try:
                path.unlink()
                removed += 1
            except OSError:
                logger.warning(f"Could not remove cache entry {path.name}", exc_info=True)
        return removed

    def stats(self) -> CacheStats:
        stats = CacheStats()
        now = self.clock()
        for path in self._entries():
            stats.total_entries += 1
            try:
                stats.total_bytes += path.stat().st_size
                if self._load(path).expired(now):
                    stats.expired_entries += 1
            except (OSError, CacheIoFailed):
                continue
        return stats
