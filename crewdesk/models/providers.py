"""Uniform provider interface over the subprocess and HTTP clients.

The low-level clients return ``ok``/``error`` result records. The classes here
wrap them behind one :class:`Provider` protocol that returns plain text and
raises :mod:`crewdesk.errors` exceptions, so the orchestrator and the council
never need to know which mechanism sits underneath.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from crewdesk.config import Config
from crewdesk.errors import MissingCredential, ProviderCallFailed
from crewdesk.models.cli import CliClient, command_available
from crewdesk.models.cloud import AnthropicClient, OpenAIClient
from crewdesk.models.gemini import GeminiClient
from crewdesk.models.ollama import DEFAULT_BASE_URL, OllamaClient

logger = logging.getLogger(__name__)

Sink = Callable[[str], None]

KIND_CLI = "cli"
KIND_LOCAL = "local"
KIND_CLOUD = "cloud"
LOW_LATENCY_KINDS = (KIND_CLI, KIND_LOCAL)


@runtime_checkable
class Provider(Protocol):
    """Anything that can turn a prompt into text."""

    name: str
    kind: str
    supports_streaming: bool
    requires_credential: bool

    def is_available(self) -> bool: ...

    def generate(self, prompt: str) -> str: ...

    def generate_streaming(self, prompt: str, sink: Sink) -> str: ...


class CliProvider:
    kind = KIND_CLI
    supports_streaming = True
    requires_credential = False

    def __init__(
        self,
        name: str,
        command: List[str],
        prompt_mode: str = "arg",
        stdin_flag: Optional[str] = None,
        timeout_seconds: int = 180,
        max_retries: int = 0,
        env: Optional[Dict[str, str]] = None,
        client: Optional[CliClient] = None,
    ) -> None:
        self.name = name
        self.command = list(command)
        self.prompt_mode = prompt_mode
        self.stdin_flag = stdin_flag
        self.timeout_seconds = timeout_seconds
        self.env = env
        self.client = client or CliClient(max_retries=max_retries)

    def is_available(self) -> bool:
        return command_available(self.command)

    def generate(self, prompt: str) -> str:
        result = self.client.run(
            command=self.command,
            prompt=prompt,
            prompt_mode=self.prompt_mode,
            stdin_flag=self.stdin_flag,
            timeout_seconds=self.timeout_seconds,
            env=self.env,
        )
        if not result.ok:
            logger.warning(f"{self.name} failed: {result.error}")
            raise ProviderCallFailed(self.name, result.diagnostic)
        return result.text

    def generate_streaming(self, prompt: str, sink: Sink) -> str:
        result = self.client.stream(
            command=self.command,
            prompt=prompt,
            sink=sink,
            prompt_mode=self.prompt_mode,
            stdin_flag=self.stdin_flag,
            timeout_seconds=self.timeout_seconds,
            env=self.env,
        )
        if not result.ok:
            logger.warning(f"{self.name} stream failed: {result.error}")
            raise ProviderCallFailed(self.name, result.diagnostic)
        return result.text


class OllamaProvider:
    kind = KIND_LOCAL
    supports_streaming = False
    requires_credential = False

    def __init__(
        self,
        name: str = "ollama",
        endpoint: str = DEFAULT_BASE_URL,
        model: str = "llama3.2",
        temperature: float | None = None,
        max_tokens: int | None = None,
        timeout_seconds: float = 120.0,
        probe_timeout: float = 0.5,
        client: Optional[OllamaClient] = None,
    ) -> None:
        self.name = name
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.probe_timeout = probe_timeout
        self.client = client or OllamaClient(base_url=endpoint, timeout=timeout_seconds)

    def is_available(self) -> bool:
        return self.client.reachable(self.probe_timeout)

    def generate(self, prompt: str) -> str:
        result = self.client.generate(
            self.model,
            prompt,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not result.ok:
            logger.warning(f"{self.name} failed: {result.error}")
            raise ProviderCallFailed(self.name, result.error or "unknown error")
        return result.text

    def generate_streaming(self, prompt: str, sink: Sink) -> str:
        text = self.generate(prompt)
        sink(text)
        return text


class CloudProvider:
    kind = KIND_CLOUD
    supports_streaming = False
    requires_credential = True

    def __init__(
        self,
        name: str,
        client: Any,
        model: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self.name = name
        self.client = client
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    def is_available(self) -> bool:
        return bool(self.client.available)

    def generate(self, prompt: str) -> str:
        if not self.client.available:
            raise MissingCredential(self.name)
        result = self.client.generate(
            prompt,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not result.ok:
            logger.warning(f"{self.name} failed: {result.error}")
            raise ProviderCallFailed(self.name, result.error or "unknown error")
        return result.text

    def generate_streaming(self, prompt: str, sink: Sink) -> str:
        text = self.generate(prompt)
        sink(text)
        return text


CLOUD_CLIENTS = {
    "openai": OpenAIClient,
    "anthropic": AnthropicClient,
    "gemini": GeminiClient,
}


def _optional_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _optional_int(value: Any) -> int | None:
    return int(value) if value is not None else None


def build_provider(name: str, cfg: Dict[str, Any], config: Config) -> Provider | None:
    """Build one provider from its config block. Unknown kinds are skipped."""
    kind = cfg.get("kind") or (KIND_CLI if cfg.get("command") else None)
    if kind == KIND_CLI:
        return CliProvider(
            name=name,
            command=cfg.get("command", []),
            prompt_mode=cfg.get("prompt_mode", "arg"),
            stdin_flag=cfg.get("stdin_flag"),
            timeout_seconds=int(cfg.get("timeout_seconds", config.cli_timeout_seconds)),
            max_retries=int(cfg.get("max_retries", config.cli_max_retries)),
            env=cfg.get("env"),
        )
    if kind == KIND_LOCAL:
        return OllamaProvider(
            name=name,
            endpoint=cfg.get("endpoint", DEFAULT_BASE_URL),
            model=cfg.get("model", "llama3.2"),
            temperature=_optional_float(cfg.get("temperature")),
            max_tokens=_optional_int(cfg.get("max_tokens")),
            timeout_seconds=float(cfg.get("timeout_seconds", 120)),
            probe_timeout=float(config.detection.get("probe_timeout_seconds", 0.5)),
        )
    if kind == KIND_CLOUD:
        client_cls = CLOUD_CLIENTS.get(cfg.get("api", name))
        if client_cls is None:
            logger.warning(f"Provider {name}: unknown api {cfg.get('api')!r}, skipping")
            return None
        kwargs: Dict[str, Any] = {"api_key": config.resolve_api_key(name) or ""}
        if cfg.get("endpoint"):
            kwargs["base_url"] = cfg["endpoint"]
        if cfg.get("timeout_seconds"):
            kwargs["timeout"] = float(cfg["timeout_seconds"])
        return CloudProvider(
            name=name,
            client=client_cls(**kwargs),
            model=cfg.get("model", ""),
            temperature=_optional_float(cfg.get("temperature")),
            max_tokens=_optional_int(cfg.get("max_tokens")),
        )
    logger.warning(f"Provider {name}: unknown kind {kind!r}, skipping")
    return None


def build_providers(config: Config) -> Dict[str, Provider]:
    """Build every enabled provider, preserving config order."""
    providers: Dict[str, Provider] = {}
    for name, cfg in config.providers.items():
        cfg = cfg or {}
        if not cfg.get("enabled", True):
            continue
        provider = build_provider(name, cfg, config)
        if provider is not None:
            providers[name] = provider
    return providers
