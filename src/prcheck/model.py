# model.py
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class EventType(str, Enum):
    PULL_REQUEST = "pull_request"
    PULL_REQUEST_TARGET = "pull_request_target"
    PUSH = "push"
    WORKFLOW_DISPATCH = "workflow_dispatch"
    SCHEDULE = "schedule"


class StepStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class Conclusion(str, Enum):
    """The single status published back to the triggering platform."""
    SUCCESS = "success"
    NEUTRAL = "neutral"
    FAILURE = "failure"


# ---------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class Event:
    """An incoming repository event. Created once, consumed once."""
    type: EventType
    action: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def sha(self) -> Optional[str]:
        pr = self.metadata.get("pull_request") or {}
        head = pr.get("head") or {}
        return head.get("sha") or self.metadata.get("after") or self.metadata.get("sha")

    @property
    def ref(self) -> Optional[str]:
        pr = self.metadata.get("pull_request") or {}
        head = pr.get("head") or {}
        return head.get("ref") or self.metadata.get("ref")

    @property
    def repository(self) -> Optional[str]:
        repo = self.metadata.get("repository") or {}
        if isinstance(repo, str):
            return repo
        return repo.get("full_name")

    @property
    def clone_url(self) -> Optional[str]:
        repo = self.metadata.get("repository") or {}
        if isinstance(repo, dict):
            return repo.get("clone_url")
        return None

    @property
    def pull_request_number(self) -> Optional[int]:
        pr = self.metadata.get("pull_request") or {}
        return pr.get("number") or self.metadata.get("number")


@dataclass(frozen=True)
class Step:
    """
    One unit of work inside a job.

    Exactly one of `uses` (an action reference, e.g. "actions/checkout@v2")
    or `run` (a shell command) is set. `with_` holds the action parameters.
    """
    name: str
    uses: str | None = None
    run: str | None = None
    with_: Dict[str, str] = field(default_factory=dict)
    env: Dict[str, str] = field(default_factory=dict)
    continue_on_error: bool = False
    shell: str | None = None       # run: steps only; falls back to the job's shell

    def __post_init__(self) -> None:
        if bool(self.uses) == bool(self.run):
            raise ValueError(f"step {self.name!r} must set exactly one of 'uses' or 'run'")
        if self.shell and not self.run:
            raise ValueError(f"step {self.name!r}: shell only applies to run steps")

    @property
    def display_name(self) -> str:
        if self.name:
            return self.name
        return self.uses or (self.run or "").splitlines()[0]


@dataclass(frozen=True)
class Job:
    name: str
    steps: Tuple[Step, ...]
    timeout_minutes: int = 360
    runs_on: str = "ubuntu-latest"
    continue_on_error: bool = False
    env: Dict[str, str] = field(default_factory=dict)
    shell: str | None = None       # default shell for run: steps

    def __post_init__(self) -> None:
        if not self.steps:
            raise ValueError(f"job {self.name!r} must have at least one step")
        if self.timeout_minutes <= 0:
            raise ValueError(f"job {self.name!r} timeout_minutes must be positive")


@dataclass(frozen=True)
class Trigger:
    """`on:` entry. `types` restricts the accepted event actions."""
    event: EventType
    types: Tuple[str, ...] | None = None


@dataclass(frozen=True)
class Workflow:
    name: str
    on: Tuple[Trigger, ...]
    jobs: Tuple[Job, ...]


# ---------------------------------------------------------------------
# Results (derived, write-once)
# ---------------------------------------------------------------------

@dataclass(frozen=True)
class StepResult:
    name: str
    status: StepStatus
    exit_code: int | None = None
    guarded: bool = False          # failure tolerated by step continue_on_error
    error_kind: str | None = None  # "step_failure" | "provision_failure" | "timeout"
    output: str = ""
    duration: float = 0.0

    @property
    def failed(self) -> bool:
        return self.status is StepStatus.FAILURE


@dataclass(frozen=True)
class JobResult:
    job: str
    steps: Tuple[StepResult, ...]
    conclusion: Conclusion
    error: str | None = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "job": self.job,
            "conclusion": self.conclusion.value,
            "error": self.error,
            "steps": [
                {
                    "name": s.name,
                    "status": s.status.value,
                    "exit_code": s.exit_code,
                    "guarded": s.guarded,
                    "error_kind": s.error_kind,
                    "duration": round(s.duration, 3),
                }
                for s in self.steps
            ],
        }


@dataclass(frozen=True)
class RunResult:
    workflow: str
    event: EventType
    jobs: Tuple[JobResult, ...]
    conclusion: Conclusion
    triggered: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "workflow": self.workflow,
            "event": self.event.value,
            "triggered": self.triggered,
            "conclusion": self.conclusion.value,
            "jobs": [j.to_dict() for j in self.jobs],
        }
