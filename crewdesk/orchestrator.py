"""Task orchestrator: plan a request into tasks, run them, collect the answer.

Lifecycle of a task is ``pending -> in_progress -> completed | failed``. The
provider is fixed at planning time; execution only reads the assignment.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from crewdesk.audit import AuditLog
from crewdesk.cache import ResponseCache
from crewdesk.classifier import decompose
from crewdesk.config import Config, get_config
from crewdesk.council import Council
from crewdesk.errors import CrewDeskError, NoTasksPlanned, ProviderCallFailed, ProviderUnavailable
from crewdesk.models.planner import SelectionPolicy
from crewdesk.models.providers import Sink
from crewdesk.models.registry import ProviderRegistry
from crewdesk.personas import build_task_prompt
from crewdesk.session import Session
from crewdesk.workflow import (
    Goal,
    Task,
    TaskStatus,
    WorkflowManager,
    calculate_progress,
)

logger = logging.getLogger(__name__)

COUNCIL_PROVIDER = "council"
COUNCIL_ASSIGNEE = "Council"
TASK_SEPARATOR = "\n\n"


@dataclass
class RequestOutcome:
    response: str
    tasks: List[Task] = field(default_factory=list)
    goal: Optional[Goal] = None


class Orchestrator:
    def __init__(
        self,
        registry: ProviderRegistry,
        config: Optional[Config] = None,
        cache: Optional[ResponseCache] = None,
        council: Optional[Council] = None,
        audit: Optional[AuditLog] = None,
        session: Optional[Session] = None,
    ) -> None:
        self.registry = registry
        self.config = config
        self.cache = cache
        self.council = council
        self.audit = audit
        self.session = session or Session()
        self.policy = SelectionPolicy(registry)
        self.workflow = WorkflowManager()
        self.tasks: List[Task] = []
        self._next_task_id = 1

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "Orchestrator":
        config = config or get_config()
        registry = ProviderRegistry.from_config(config)
        audit = AuditLog.from_config(config)
        return cls(
            registry=registry,
            config=config,
            cache=ResponseCache.from_config(config),
            council=Council.from_config(config, registry, audit=audit),
            audit=audit,
        )

    def _log(self, event: str, data: Dict[str, Any]) -> None:
        if self.audit:
            self.audit.log(event, data)

    def is_available(self) -> bool:
        return bool(self.registry.reachable)

    def get_task(self, task_id: int) -> Task | None:
        for task in self.tasks:
            if task.id == task_id:
                return task
        return None

    @property
    def goals(self) -> List[Goal]:
        return self.workflow.goals

    def status_summary(self) -> Dict[str, Any]:
        counts = {status.value: 0 for status in TaskStatus}
        for task in self.tasks:
            counts[task.status.value] += 1
        return {
            "tasks": counts,
            "progress": calculate_progress(self.tasks),
            "active_goals": len(self.workflow.active_goals()),
            "providers": sorted(self.registry.reachable),
            "council": bool(self.council and self.council.active),
            "session": self.session.to_dict(),
        }

    def plan(self, request: str, override: str | None = None) -> List[Task]:
        """Split ``request`` into tasks and fix each task's assignee.

        Every fragment is recorded even when resolution fails; such tasks are
        stored as failed and the first resolution error is raised afterwards.
        """
        if not request or not request.strip():
            raise NoTasksPlanned("Nothing to do: the request is empty")

        use_council = override is None and self.council is not None and self.council.active
        planned: List[Task] = []
        failure: Optional[ProviderUnavailable] = None

        for fragment, intent in decompose(request):
            task = Task(
                id=self._next_task_id,
                title=f"{intent.display_name} task",
                description=fragment,
                intent=intent,
            )
            self._next_task_id += 1

            if use_council:
                task.provider = COUNCIL_PROVIDER
                task.assigned_to = COUNCIL_ASSIGNEE
            else:
                try:
                    assignment = self.policy.resolve(intent, override)
                except ProviderUnavailable as exc:
                    task.status = TaskStatus.FAILED
                    task.error = str(exc)
                    failure = failure or exc
                else:
                    task.provider = assignment.provider
                    task.assigned_to = assignment.assignee

            self.tasks.append(task)
            planned.append(task)
            self._log("task.planned", {
                "task_id": task.id,
                "intent": intent.value,
                "provider": task.provider,
                "assigned_to": task.assigned_to,
                "error": task.error,
            })

        logger.info(f"Planned {len(planned)} task(s) for request")
        if failure is not None:
            raise failure
        return planned

    def execute(self, task_id: int, sink: Sink | None = None) -> str:
        task = self.get_task(task_id)
        if task is None:
            raise KeyError(f"Unknown task id {task_id}")
        if task.status != TaskStatus.PENDING:
            raise ValueError(f"Task {task_id} is {task.status.value}, expected pending")

        task.status = TaskStatus.IN_PROGRESS
        try:
            text = self._run(task, sink)
        except Exception as exc:
            error = exc
            if not isinstance(exc, CrewDeskError):
                logger.exception(f"Task {task.id} raised unexpectedly")
                error = ProviderCallFailed(task.provider or "unknown", f"{type(exc).__name__}: {exc}")
            task.status = TaskStatus.FAILED
            task.result = None
            task.error = str(error)
            logger.warning(f"Task {task.id} failed on {task.provider}: {error}")
            self._log("task.failed", {"task_id": task.id, "provider": task.provider, "error": task.error})
            if error is exc:
                raise
            raise error from exc

        task.result = text
        task.status = TaskStatus.COMPLETED
        self.session.record(text)
        self._log("task.completed", {"task_id": task.id, "provider": task.provider, "chars": len(text)})
        return text

    def _run(self, task: Task, sink: Sink | None) -> str:
        if not task.provider:
            raise ProviderUnavailable(f"Task {task.id} has no provider assigned")

        if self.cache is not None:
            cached = self.cache.get(task.description, task.provider)
            if cached is not None:
                if sink is not None:
                    sink(cached)
                return cached

        member = self.registry.find_member(task.assigned_to) if task.assigned_to else None
        prompt = build_task_prompt(task.description, task.intent, member.role if member else None)

        if task.provider == COUNCIL_PROVIDER:
            if self.council is None:
                raise ProviderUnavailable("Council is not configured")
            text = self.council.process(prompt)
            if sink is not None:
                sink(text)
        else:
            provider = self.registry.get(task.provider)
            if provider is None:
                raise ProviderUnavailable(f"Provider {task.provider} is not registered")
            if sink is not None:
                text = provider.generate_streaming(prompt, sink)
            else:
                text = provider.generate(prompt)

        if self.cache is not None:
            self.cache.set(task.description, task.provider, text)
        return text

    def handle_request(self, request: str, override: str | None = None) -> RequestOutcome:
        return self._handle(request, None, override)

    def handle_request_streaming(self, request: str, sink: Sink, override: str | None = None) -> RequestOutcome:
        return self._handle(request, sink, override)

    def _handle(self, request: str, sink: Sink | None, override: str | None) -> RequestOutcome:
        tasks = self.plan(request, override)
        goal = self.workflow.create_goal(request.strip()[:60], request)
        for task in tasks:
            self.workflow.add_task_to_goal(goal.id, task.id)

        outputs: List[str] = []
        for index, task in enumerate(tasks):
            if index and sink is not None:
                sink(TASK_SEPARATOR)
            try:
                text = self.execute(task.id, sink)
            except CrewDeskError as exc:
                text = f"Error: {exc}"
                if sink is not None:
                    sink(text)
            outputs.append(text)

        self.workflow.update_goal_status(goal.id, self.tasks)
        return RequestOutcome(response=TASK_SEPARATOR.join(outputs), tasks=tasks, goal=goal)
