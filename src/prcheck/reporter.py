# reporter.py
# Outcome reporting: turns recorded step outcomes into the one status the
# triggering platform sees, then publishes it.

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterable, Protocol, Sequence

from .model import Conclusion, Job, JobResult, RunResult, StepResult
from .ui.console import Console, get_console

_SEVERITY = {Conclusion.SUCCESS: 0, Conclusion.NEUTRAL: 1, Conclusion.FAILURE: 2}


def conclude(job: Job, steps: Sequence[StepResult], error: BaseException | None = None) -> Conclusion:
    """
    Published conclusion for one job.

    `error` is the unguarded failure that ended the job early (provisioning,
    an unguarded step, or the timeout). Guarded step failures only show up
    in `steps`.
      - unguarded failure            -> failure (neutral if job.continue_on_error)
      - only tolerated failures      -> neutral
      - nothing failed               -> success
    """
    if error is not None:
        return Conclusion.NEUTRAL if job.continue_on_error else Conclusion.FAILURE
    if any(s.failed for s in steps):
        return Conclusion.NEUTRAL
    return Conclusion.SUCCESS


def aggregate(conclusions: Iterable[Conclusion]) -> Conclusion:
    """Worst conclusion wins; a run with no jobs is neutral."""
    worst: Conclusion | None = None
    for c in conclusions:
        if worst is None or _SEVERITY[c] > _SEVERITY[worst]:
            worst = c
    return worst if worst is not None else Conclusion.NEUTRAL


def summarize(job: JobResult) -> str:
    """Markdown summary of a job, used as check-run output."""
    lines = [f"**{job.job}**: {job.conclusion.value}", ""]
    for s in job.steps:
        mark = ":x:" if s.failed else ":white_check_mark:"
        extra = " (continue-on-error)" if s.failed and s.guarded else ""
        code = f" exit={s.exit_code}" if s.exit_code not in (None, 0) else ""
        lines.append(f"- {mark} {s.name}{code}{extra}")
    if job.error:
        lines.extend(["", "```", job.error, "```"])
    return "\n".join(lines)


class Publisher(Protocol):
    def publish(self, result: RunResult) -> None: ...


class ConsolePublisher:
    def __init__(self, console: Console | None = None):
        self.console = console or get_console()

    def publish(self, result: RunResult) -> None:
        self.console.print_results(result)


class JsonPublisher:
    """Write the run result as JSON, e.g. for a later upload step."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def publish(self, result: RunResult) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(result.to_dict(), indent=2) + "\n", encoding="utf-8")


def publish(result: RunResult, publishers: Sequence[Publisher]) -> None:
    # a skipped run publishes nothing
    if not result.triggered:
        return
    for p in publishers:
        p.publish(result)
