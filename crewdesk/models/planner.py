"""Selection policy: picks the provider and team member that handle a task."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

from crewdesk.classifier import Intent
from crewdesk.errors import MissingCredential, ProviderUnavailable
from crewdesk.models.registry import ProviderRegistry, TeamMember

logger = logging.getLogger(__name__)

# Per intent: preferred providers first, then fallbacks.
PREFERENCES: Dict[Intent, List[str]] = {
    Intent.WRITE: ["claude-cli", "gemini-cli", "ollama", "codex-cli"],
    Intent.RESEARCH: ["gemini-cli", "claude-cli", "ollama", "codex-cli"],
    Intent.ANALYZE: ["codex-cli", "claude-cli", "gemini-cli", "ollama"],
    Intent.CREATE: ["claude-cli", "gemini-cli", "ollama", "codex-cli"],
    Intent.EDIT: ["claude-cli", "codex-cli", "gemini-cli", "ollama"],
    Intent.EXPLAIN: ["gemini-cli", "claude-cli", "ollama", "codex-cli"],
    Intent.SOLVE: ["codex-cli", "claude-cli", "gemini-cli", "ollama"],
    Intent.GENERAL: ["claude-cli", "gemini-cli", "codex-cli", "ollama"],
}

ALIASES: Dict[str, str] = {
    "claude": "claude-cli",
    "gemini": "gemini-cli",
    "codex": "codex-cli",
    "local": "ollama",
    "llama": "ollama",
    "gpt": "openai",
    "chatgpt": "openai",
    "gpt4": "openai",
    "claude-api": "anthropic",
    "gemini-cloud": "gemini-api",
    "google": "gemini-api",
}


def normalize_provider_name(name: str) -> str:
    key = name.strip().lower()
    return ALIASES.get(key, key)


@dataclass
class Assignment:
    provider: str
    member: Optional[TeamMember] = None

    @property
    def assignee(self) -> str:
        return self.member.name if self.member else self.provider


class SelectionPolicy:
    """Deterministic provider resolution over a :class:`ProviderRegistry`."""

    def __init__(self, registry: ProviderRegistry, preferences: Dict[Intent, List[str]] | None = None) -> None:
        self.registry = registry
        self.preferences = preferences or PREFERENCES

    def _rank(self, intent: Intent, provider: str) -> int:
        order = self.preferences.get(intent, [])
        return order.index(provider) if provider in order else len(order)

    def _ordered(self, intent: Intent, members: List[TeamMember]) -> List[TeamMember]:
        index = {id(member): i for i, member in enumerate(self.registry.members)}
        return sorted(members, key=lambda m: (self._rank(intent, m.provider), index.get(id(m), 0)))

    def _first(
        self,
        intent: Intent,
        members: List[TeamMember],
        predicate: Callable[[TeamMember], bool],
    ) -> Optional[TeamMember]:
        for member in self._ordered(intent, members):
            if predicate(member):
                return member
        return None

    def resolve(self, intent: Intent, override: str | None = None) -> Assignment:
        if override:
            return self._resolve_override(intent, override)

        available = self.registry.available_members
        low_latency = self.registry.is_low_latency

        steps: List[Callable[[TeamMember], bool]] = [
            lambda m: m.specialty == intent and low_latency(m.provider),
        ]
        if intent == Intent.GENERAL:
            steps.append(lambda m: low_latency(m.provider))
        steps.extend([
            lambda m: m.specialty == intent,
            lambda m: low_latency(m.provider),
            lambda m: True,
        ])
        for predicate in steps:
            member = self._first(intent, available, predicate)
            if member is not None:
                return Assignment(provider=member.provider, member=member)

        # Reachable providers nobody on the roster is bound to.
        reachable = sorted(self.registry.reachable, key=lambda name: self._rank(intent, name))
        if reachable:
            return Assignment(provider=reachable[0])

        raise ProviderUnavailable("No AI providers available")

    def _resolve_override(self, intent: Intent, override: str) -> Assignment:
        name = normalize_provider_name(override)
        provider = self.registry.get(name)
        if provider is None:
            raise ProviderUnavailable(f"Unknown provider: {override}")
        if not self.registry.is_reachable(name):
            if provider.requires_credential:
                raise MissingCredential(name)
            raise ProviderUnavailable(f"Provider {name} is not available")

        members = self.registry.members_for(name)
        member = next((m for m in members if m.specialty == intent), None)
        if member is None and members:
            member = members[0]
        logger.debug(f"Override routed {intent.value} to {name}")
        return Assignment(provider=name, member=member)
