"""Configuration loader for crewdesk."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict
import os
import yaml

from crewdesk.errors import ConfigError

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "default.yaml"
USER_CONFIG_PATH = Path.home() / ".config" / "crewdesk" / "config.yaml"

_TRUTHY = ("true", "1", "yes", "on")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a mapping at the top of {path}")
    return data


def load_config(path: str | Path | None = None) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    if DEFAULT_CONFIG_PATH.exists():
        data = _read_yaml(DEFAULT_CONFIG_PATH)
    user_path = Path(path or os.getenv("CREWDESK_CONFIG") or USER_CONFIG_PATH).expanduser()
    if user_path.exists():
        data = _deep_merge(data, _read_yaml(user_path))

    # Environment overrides - Cache
    cache_dir = os.getenv("CREWDESK_CACHE_DIR")
    if cache_dir:
        data.setdefault("cache", {})["directory"] = cache_dir
    cache_ttl = os.getenv("CREWDESK_CACHE_TTL")
    if cache_ttl:
        try:
            data.setdefault("cache", {})["ttl_secs"] = int(cache_ttl)
        except ValueError:
            pass
    cache_enabled = os.getenv("CREWDESK_CACHE_ENABLED")
    if cache_enabled is not None:
        data.setdefault("cache", {})["enabled"] = cache_enabled.lower() in _TRUTHY

    # Environment overrides - Council
    council = os.getenv("CREWDESK_COUNCIL")
    if council is not None:
        data.setdefault("council", {})["enabled"] = council.lower() in _TRUTHY
    rounds = os.getenv("CREWDESK_COUNCIL_ROUNDS")
    if rounds:
        try:
            data.setdefault("council", {})["rounds"] = int(rounds)
        except ValueError:
            pass

    # Environment overrides - Routing
    default_provider = os.getenv("CREWDESK_DEFAULT_PROVIDER")
    if default_provider:
        data["default_provider"] = default_provider

    cli_timeout = os.getenv("CREWDESK_CLI_TIMEOUT")
    if cli_timeout:
        try:
            data.setdefault("pipeline", {})["cli_timeout_seconds"] = int(cli_timeout)
        except ValueError:
            pass

    data_dir = os.getenv("CREWDESK_DATA_DIR")
    if data_dir:
        data["data_dir"] = data_dir

    return data


@dataclass
class Config:
    raw: Dict[str, Any]

    @property
    def providers(self) -> Dict[str, Dict[str, Any]]:
        return self.raw.get("providers", {}) or {}

    @property
    def default_provider(self) -> str | None:
        return self.raw.get("default_provider")

    @property
    def council(self) -> Dict[str, Any]:
        return self.raw.get("council", {}) or {}

    @property
    def cache(self) -> Dict[str, Any]:
        return self.raw.get("cache", {}) or {}

    @property
    def team(self) -> Dict[str, Any]:
        return self.raw.get("team", {}) or {}

    @property
    def detection(self) -> Dict[str, Any]:
        return self.raw.get("detection", {}) or {}

    @property
    def audit(self) -> Dict[str, Any]:
        return self.raw.get("audit", {}) or {}

    @property
    def pipeline(self) -> Dict[str, Any]:
        return self.raw.get("pipeline", {}) or {}

    @property
    def data_dir(self) -> Path:
        default = str(Path.home() / ".crewdesk")
        return Path(self.raw.get("data_dir", default)).expanduser()

    @property
    def cli_timeout_seconds(self) -> int:
        """Timeout for CLI provider calls in seconds. Default 3 minutes."""
        return int(self.pipeline.get("cli_timeout_seconds", 180))

    @property
    def cli_max_retries(self) -> int:
        return int(self.pipeline.get("cli_max_retries", 0))

    def provider(self, name: str) -> Dict[str, Any]:
        return self.providers.get(name, {}) or {}

    def resolve_api_key(self, name: str) -> str | None:
        """Resolve a provider's API key.

        Accepts a literal key, a ``$ENV_VAR`` reference, or an ``api_key_env``
        entry naming the variable. Empty values resolve to ``None``.
        """
        cfg = self.provider(name)
        key = str(cfg.get("api_key") or "").strip()
        if key.startswith("$"):
            key = os.environ.get(key[1:], "").strip()
        if not key and cfg.get("api_key_env"):
            key = os.environ.get(str(cfg["api_key_env"]), "").strip()
        return key or None


def get_config(path: str | Path | None = None) -> Config:
    return Config(load_config(path))
