"""Console output formatting utilities for prcheck."""

from __future__ import annotations

import sys
from typing import Optional

from ..model import Conclusion, JobResult, RunResult, StepResult


class Console:
    """Centralized console output formatting."""

    def __init__(self, debug: bool = False):
        """
        Initialize console formatter.

        Args:
            debug: If True, show detailed output including stack traces
        """
        self.debug = debug

    def print_run_started(
        self,
        workflow: str,
        event: str,
        job_count: int,
    ) -> None:
        """Print run start information."""
        print("\nRUN STARTED")
        print(f"Workflow: {workflow}")
        print(f"Event: {event}")
        print(f"Jobs: {job_count}")
        print()

    def print_trigger(self, should_run: bool, reason: str) -> None:
        verdict = "run" if should_run else "skip"
        print(f"TRIGGER: {verdict} ({reason})")

    def print_job_start(self, name: str, runs_on: str) -> None:
        """Print job start message."""
        print(f"\nJOB STARTED: {name} [{runs_on}]")

    def print_step(self, name: str) -> None:
        """Print step start message."""
        print(f"STEP: {name}")

    def print_step_result(self, result: StepResult) -> None:
        if not result.failed:
            print(f"  ok ({result.duration:.1f}s)")
            return

        label = "STEP FAILED (continuing)" if result.guarded else "STEP FAILED"
        print(f"  {label}: {result.name}")
        if result.exit_code is not None:
            print(f"  Exit code: {result.exit_code}")
        if result.error_kind and result.error_kind != "step_failure":
            print(f"  Reason: {result.error_kind}")
        if result.output:
            lines = result.output.rstrip().splitlines()
            # last lines are the useful ones; everything in debug mode
            shown = lines if self.debug else lines[-20:]
            for line in shown:
                print(f"    | {line}")

    def print_job_result(self, result: JobResult) -> None:
        print(f"JOB {result.conclusion.value.upper()}: {result.job}")
        if result.error:
            first_line = result.error.split("\n")[0]
            print(f"Error: {first_line}")

    def print_plan_job(self, name: str, steps: list[str]) -> None:
        """Print one job of the execution plan."""
        print(f"  {name}")
        for i, step in enumerate(steps, 1):
            print(f"    {i}. {step}")

    def print_results(self, result: RunResult) -> None:
        """Print final results summary."""
        print("\n" + "=" * 40)
        print("RESULTS")
        print("=" * 40)
        for job in result.jobs:
            print(f"  {job.job}: {job.conclusion.value.upper()}")
            for step in job.steps:
                mark = "x" if step.failed else "+"
                note = " (continue-on-error)" if step.failed and step.guarded else ""
                print(f"    [{mark}] {step.name}{note}")
        print(f"CONCLUSION: {result.conclusion.value.upper()}")
        if result.conclusion is Conclusion.NEUTRAL and result.jobs:
            print("Failures were tolerated by continue-on-error.")

    def print_published(self, target: str, detail: str) -> None:
        print(f"PUBLISHED: {target} ({detail})")

    def print_error(
        self,
        title: str,
        message: str,
        details: Optional[list[str]] = None,
        suggestion: Optional[str] = None,
    ) -> None:
        """
        Print structured error message.

        Args:
            title: Error title
            message: Main error message
            details: Optional list of detail lines
            suggestion: Optional suggestion for user
        """
        print(f"\nERROR: {title}", file=sys.stderr)
        print(f"{message}", file=sys.stderr)
        if details:
            for detail in details:
                print(f"  {detail}", file=sys.stderr)
        if suggestion:
            print(f"\n{suggestion}", file=sys.stderr)

    def print_exception(self, exc: Exception) -> None:
        """Print exception, with full traceback only in debug mode."""
        if self.debug:
            import traceback
            traceback.print_exception(type(exc), exc, exc.__traceback__)
        else:
            print(f"Error: {exc}", file=sys.stderr)

    def print_info(self, message: str) -> None:
        """Print informational message."""
        print(message)

    def print_debug(self, message: str) -> None:
        """Print debug message (only if debug mode enabled)."""
        if self.debug:
            print(f"[DEBUG] {message}", file=sys.stderr)


# Global console instance (will be initialized by CLI)
_console: Optional[Console] = None


def get_console() -> Console:
    """Get the global console instance."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def set_console(console: Console) -> None:
    """Set the global console instance."""
    global _console
    _console = console
