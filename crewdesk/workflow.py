"""Task and goal records plus the helpers that summarise them."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional

from crewdesk.classifier import Intent


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED)


STATUS_ICONS = {
    TaskStatus.PENDING: "[ ]",
    TaskStatus.IN_PROGRESS: "[~]",
    TaskStatus.COMPLETED: "[x]",
    TaskStatus.FAILED: "[!]",
}


@dataclass
class Task:
    id: int
    title: str
    description: str
    intent: Intent
    status: TaskStatus = TaskStatus.PENDING
    assigned_to: Optional[str] = None
    provider: Optional[str] = None
    result: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "intent": self.intent.value,
            "status": self.status.value,
            "assigned_to": self.assigned_to,
            "provider": self.provider,
            "result": self.result,
            "error": self.error,
        }


class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Goal:
    id: int
    title: str
    description: str = ""
    task_ids: List[int] = field(default_factory=list)
    status: GoalStatus = GoalStatus.ACTIVE


def goal_status_for(tasks: List[Task]) -> GoalStatus:
    if tasks and all(task.status == TaskStatus.COMPLETED for task in tasks):
        return GoalStatus.COMPLETED
    if any(task.status == TaskStatus.FAILED for task in tasks) and all(task.status.terminal for task in tasks):
        return GoalStatus.FAILED
    return GoalStatus.ACTIVE


class WorkflowManager:
    """Groups tasks into goals. Goal ids start at 1 and are never reused."""

    def __init__(self) -> None:
        self.goals: List[Goal] = []
        self._next_id = 1

    def create_goal(self, title: str, description: str = "") -> Goal:
        goal = Goal(id=self._next_id, title=title, description=description)
        self._next_id += 1
        self.goals.append(goal)
        return goal

    def get_goal(self, goal_id: int) -> Goal | None:
        for goal in self.goals:
            if goal.id == goal_id:
                return goal
        return None

    def add_task_to_goal(self, goal_id: int, task_id: int) -> None:
        goal = self.get_goal(goal_id)
        if goal is not None and task_id not in goal.task_ids:
            goal.task_ids.append(task_id)

    def update_goal_status(self, goal_id: int, tasks: List[Task]) -> GoalStatus | None:
        goal = self.get_goal(goal_id)
        if goal is None:
            return None
        members = [task for task in tasks if task.id in goal.task_ids]
        goal.status = goal_status_for(members)
        return goal.status

    def active_goals(self) -> List[Goal]:
        return [goal for goal in self.goals if goal.status == GoalStatus.ACTIVE]


def format_task_list(tasks: List[Task]) -> List[str]:
    lines = []
    for task in tasks:
        assignee = task.assigned_to or "unassigned"
        lines.append(f"{STATUS_ICONS[task.status]} {task.title} ({assignee}) - {task.intent.display_name}")
    return lines


def calculate_progress(tasks: List[Task]) -> float:
    """Percentage of tasks completed, 0.0 for an empty list."""
    if not tasks:
        return 0.0
    completed = sum(1 for task in tasks if task.status == TaskStatus.COMPLETED)
    return completed / len(tasks) * 100.0
