"""Council: multi-provider deliberation followed by a synthesis pass.

Each round sends the same prompt to every member concurrently. From the second
round on, the prompt carries the previous round's answers so members can
converge. A member that fails or misses the round deadline is simply absent
from that round; it is asked again in the next one.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from crewdesk.audit import AuditLog
from crewdesk.config import Config
from crewdesk.errors import AllCouncilMembersFailed, ProviderUnavailable
from crewdesk.models.providers import Provider
from crewdesk.models.registry import ProviderRegistry

logger = logging.getLogger(__name__)

FIRST_ROUND_PROMPT = "Task: {task}\n\nPlease provide your response to this task."

REVIEW_ROUND_PROMPT = (
    "Task: {task}\n\n"
    "Previous responses from other council members:\n{context}\n\n"
    "Please review the previous responses and provide your updated response. "
    "Consider the strengths of each approach and aim for consensus."
)

SYNTHESIS_PROMPT = (
    "You are synthesizing responses from multiple AI council members.\n\n"
    "Original task: {task}\n\n"
    "Council responses:\n{responses}\n\n"
    "Please synthesize these responses into a single, cohesive answer that:\n"
    "1. Incorporates the best ideas from each response\n"
    "2. Resolves any contradictions\n"
    "3. Maintains clarity and usefulness\n\n"
    "Provide only the synthesized response, without meta-commentary."
)


@dataclass
class CouncilResult:
    answer: str
    rounds: List[Dict[str, str]] = field(default_factory=list)
    synthesized: bool = False


class Council:
    def __init__(
        self,
        members: List[Provider],
        rounds: int = 2,
        member_timeout_seconds: float = 180.0,
        context_chars: int = 500,
        synthesis_chars: int = 800,
        enabled: bool = True,
        audit: Optional[AuditLog] = None,
    ) -> None:
        self.members = list(members)
        self.rounds = max(1, int(rounds))
        self.member_timeout_seconds = member_timeout_seconds
        self.context_chars = context_chars
        self.synthesis_chars = synthesis_chars
        self.enabled = enabled
        self.audit = audit

    @classmethod
    def from_config(
        cls,
        config: Config,
        registry: ProviderRegistry,
        audit: Optional[AuditLog] = None,
    ) -> "Council":
        cfg = config.council
        members: List[Provider] = []
        for name in cfg.get("members", []) or []:
            provider = registry.get(name)
            if provider is None:
                logger.warning(f"Council member {name} is not a configured provider")
                continue
            if not registry.is_reachable(name):
                logger.info(f"Council member {name} is not reachable, leaving it out")
                continue
            members.append(provider)

        if not members and config.default_provider:
            fallback = registry.get(config.default_provider)
            if fallback is not None and registry.is_reachable(config.default_provider):
                members.append(fallback)

        return cls(
            members=members,
            rounds=int(cfg.get("rounds", 2)),
            member_timeout_seconds=float(cfg.get("member_timeout_seconds", 180)),
            context_chars=int(cfg.get("context_chars", 500)),
            synthesis_chars=int(cfg.get("synthesis_chars", 800)),
            enabled=bool(cfg.get("enabled", False)),
            audit=audit,
        )

    @property
    def active(self) -> bool:
        return self.enabled and len(self.members) > 1

    @property
    def member_names(self) -> List[str]:
        return [member.name for member in self.members]

    def process(self, task: str) -> str:
        if not self.members:
            raise ProviderUnavailable("No council members available. Check your configuration.")
        if not self.active:
            return self.members[0].generate(task)
        return self.deliberate(task).answer

    def deliberate(self, task: str) -> CouncilResult:
        transcript: List[Dict[str, str]] = []
        latest: Dict[str, str] = {}
        context = ""

        for round_index in range(self.rounds):
            if round_index == 0:
                prompt = FIRST_ROUND_PROMPT.format(task=task)
            else:
                prompt = REVIEW_ROUND_PROMPT.format(task=task, context=context)

            answers = self._run_round(round_index, prompt)
            transcript.append(answers)
            latest.update(answers)
            context = "\n".join(
                f"=== {name} ===\n{answer[: self.context_chars]}\n" for name, answer in answers.items()
            )

        finals = [latest[name] for name in self.member_names if name in latest]
        if not finals:
            raise AllCouncilMembersFailed("No responses from council members")
        if len(finals) == 1:
            return CouncilResult(answer=finals[0], rounds=transcript, synthesized=False)

        listing = "\n".join(
            f"Response {i}:\n{answer[: self.synthesis_chars]}\n" for i, answer in enumerate(finals, start=1)
        )
        answer = self.members[0].generate(SYNTHESIS_PROMPT.format(task=task, responses=listing))
        return CouncilResult(answer=answer, rounds=transcript, synthesized=True)

    def _run_round(self, round_index: int, prompt: str) -> Dict[str, str]:
        """Query every member in parallel; answers come back in member order."""
        # Not a context manager: leaving one would block on members that overran.
        executor = ThreadPoolExecutor(max_workers=len(self.members))
        try:
            futures = {executor.submit(member.generate, prompt): member.name for member in self.members}
            done, pending = wait(futures, timeout=self.member_timeout_seconds)
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        received: Dict[str, str] = {}
        for future in done:
            name = futures[future]
            try:
                received[name] = future.result()
            except Exception as e:
                logger.warning(f"Council member {name} failed: {e}")
        for future in pending:
            logger.warning(
                f"Council member {futures[future]} missed round {round_index + 1} "
                f"(>{self.member_timeout_seconds}s)"
            )

        answers = {name: received[name] for name in self.member_names if name in received}
        if self.audit:
            self.audit.log("council.round", {
                "round": round_index + 1,
                "responded": list(answers),
                "missing": [name for name in self.member_names if name not in answers],
            })
        return answers
