from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class CIError(Exception):
    """
    Structured CI error with enough context for:
      - clean CLI output
      - the step result's error_kind
      - debugging without full tracebacks
    """
    kind: str
    message: str
    job: str | None = None
    step: str | None = None
    details: dict = field(default_factory=dict)

    def __str__(self) -> str:
        lines = [f"{self.kind}: {self.message}"]
        if self.job:
            lines.append(f"job={self.job}")
        if self.step:
            lines.append(f"step={self.step}")
        for k, v in self.details.items():
            lines.append(f"{k}={v}")
        return "\n".join(lines)


class TriggerRejected(CIError):
    def __init__(self, message: str, **details) -> None:
        super().__init__(kind="trigger_rejected", message=message, details=details)


class WorkflowError(CIError):
    def __init__(self, message: str, **details) -> None:
        super().__init__(kind="workflow_error", message=message, details=details)


class ProvisionFailure(CIError):
    """Sandbox could not be acquired, or a step's tool could not be installed."""

    def __init__(self, message: str, *, job: str | None = None, step: str | None = None, **details) -> None:
        super().__init__(kind="provision_failure", message=message, job=job, step=step, details=details)


class StepFailure(CIError):
    def __init__(self, *, job: str, step: str, cmd: str, exit_code: int, output: str = "") -> None:
        super().__init__(
            kind="step_failure",
            message=f"step '{step}' failed (exit={exit_code}): {cmd}",
            job=job,
            step=step,
            details={"exit_code": exit_code},
        )
        self.cmd = cmd
        self.exit_code = exit_code
        self.output = output


class TimeoutExceeded(CIError):
    def __init__(self, *, job: str, timeout_minutes: float, step: str | None = None, output: str = "") -> None:
        super().__init__(
            kind="timeout",
            message=f"job exceeded its timeout of {timeout_minutes:g} minute(s)",
            job=job,
            step=step,
        )
        self.output = output
