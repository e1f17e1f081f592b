"""Provider registry: the set of configured providers, their reachability and the team roster."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set

from crewdesk.classifier import Intent
from crewdesk.config import Config
from crewdesk.errors import ConfigError
from crewdesk.models.providers import LOW_LATENCY_KINDS, Provider, build_providers

logger = logging.getLogger(__name__)


@dataclass
class TeamMember:
    name: str
    role: str
    specialty: Intent
    provider: str
    available: bool = False


# Roster order matters: it breaks ties during selection.
DEFAULT_ROSTER: List[Dict[str, Any]] = [
    {"name": "Gem", "role": "Researcher", "specialty": Intent.RESEARCH, "provider": "gemini-cli"},
    {"name": "Iris", "role": "Writer", "specialty": Intent.WRITE, "provider": "gemini-cli"},
    {"name": "Nova", "role": "Explainer", "specialty": Intent.EXPLAIN, "provider": "gemini-cli"},
    {"name": "Dev", "role": "Analyst", "specialty": Intent.ANALYZE, "provider": "codex-cli"},
    {"name": "Cody", "role": "Problem Solver", "specialty": Intent.SOLVE, "provider": "codex-cli"},
    {"name": "Alex", "role": "Editor", "specialty": Intent.EDIT, "provider": "claude-cli"},
    {"name": "Sam", "role": "Creative", "specialty": Intent.CREATE, "provider": "claude-cli"},
    {"name": "Local", "role": "General Assistant", "specialty": Intent.GENERAL, "provider": "ollama"},
    {"name": "GPT", "role": "Cloud Assistant", "specialty": Intent.GENERAL, "provider": "openai"},
    {"name": "Claude", "role": "Cloud Assistant", "specialty": Intent.GENERAL, "provider": "anthropic"},
    {"name": "Gemini", "role": "Cloud Assistant", "specialty": Intent.GENERAL, "provider": "gemini-api"},
]


def _parse_intent(value: Any) -> Intent:
    if isinstance(value, Intent):
        return value
    try:
        return Intent(str(value).strip().lower())
    except ValueError as exc:
        raise ConfigError(f"Unknown specialty in team roster: {value!r}") from exc


def build_roster(entries: Iterable[Dict[str, Any]]) -> List[TeamMember]:
    members = []
    for entry in entries:
        try:
            members.append(
                TeamMember(
                    name=str(entry["name"]),
                    role=str(entry.get("role", "General Assistant")),
                    specialty=_parse_intent(entry.get("specialty", Intent.GENERAL)),
                    provider=str(entry["provider"]),
                )
            )
        except KeyError as exc:
            raise ConfigError(f"Team member is missing {exc.args[0]!r}: {entry!r}") from exc
    return members


class ProviderRegistry:
    """Owns provider instances and the roster bound to them.

    Reachability is a snapshot taken by :meth:`refresh`; it is not re-probed on
    every lookup. Call ``refresh()`` again to pick up providers that came up
    or went away.
    """

    def __init__(
        self,
        providers: Dict[str, Provider] | Iterable[Provider],
        members: Optional[List[TeamMember]] = None,
        max_workers: int = 8,
    ) -> None:
        if isinstance(providers, dict):
            self.providers: Dict[str, Provider] = dict(providers)
        else:
            self.providers = {provider.name: provider for provider in providers}
        self.members = members if members is not None else build_roster(DEFAULT_ROSTER)
        self.max_workers = max_workers
        self._reachable: Optional[Set[str]] = None

    @classmethod
    def from_config(cls, config: Config, detect: bool = True) -> "ProviderRegistry":
        roster = config.team.get("members")
        members = build_roster(roster) if roster else None
        registry = cls(build_providers(config), members)
        if detect:
            registry.refresh(parallel=bool(config.detection.get("parallel", True)))
        return registry

    def get(self, name: str) -> Provider | None:
        return self.providers.get(name)

    def names(self) -> List[str]:
        return list(self.providers)

    def _probe(self, provider: Provider) -> bool:
        try:
            return bool(provider.is_available())
        except Exception:
            logger.debug(f"Availability probe for {provider.name} raised", exc_info=True)
            return False

    def detect(self) -> Set[str]:
        """Probe every provider one after another."""
        return {name for name, provider in self.providers.items() if self._probe(provider)}

    def detect_parallel(self) -> Set[str]:
        """Probe every provider concurrently. Same result as :meth:`detect`."""
        if not self.providers:
            return set()
        names = list(self.providers)
        workers = max(1, min(self.max_workers, len(names)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(self._probe, [self.providers[name] for name in names]))
        return {name for name, ok in zip(names, results) if ok}

    def refresh(self, parallel: bool = True) -> Set[str]:
        reachable = self.detect_parallel() if parallel else self.detect()
        self._reachable = reachable
        for member in self.members:
            member.available = member.provider in reachable
        logger.debug(f"Reachable providers: {sorted(reachable)}")
        return set(reachable)

    @property
    def reachable(self) -> Set[str]:
        if self._reachable is None:
            self.refresh()
        return set(self._reachable or ())

    def is_reachable(self, name: str) -> bool:
        return name in self.reachable

    def is_low_latency(self, name: str) -> bool:
        provider = self.providers.get(name)
        return provider is not None and provider.kind in LOW_LATENCY_KINDS

    @property
    def available_members(self) -> List[TeamMember]:
        reachable = self.reachable
        return [member for member in self.members if member.provider in reachable]

    def members_for(self, provider: str) -> List[TeamMember]:
        return [member for member in self.members if member.provider == provider]

    def find_member(self, name: str) -> TeamMember | None:
        for member in self.members:
            if member.name == name:
                return member
        return None
