# sandbox.py
# Disposable, deadline-bounded execution environment for a single job.

from __future__ import annotations

import os
import shutil
import signal
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional, Sequence

from .config import Settings
from .errors import ProvisionFailure, TimeoutExceeded
from .model import Job

OUTPUT_TAIL = 4000


@dataclass(frozen=True)
class ExecResult:
    exit_code: int
    output: str
    duration: float


class LocalSandbox:
    """
    A temporary workspace on this host.

    The job's timeout is a deadline for the whole sandbox lifetime: every
    command gets whatever time is left, and running out raises
    TimeoutExceeded after killing the command's process group.
    """

    def __init__(
        self,
        job: Job,
        *,
        work_dir: str | Path,
        labels: Sequence[str],
        keep: bool = False,
        timeout_seconds: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.job = job
        self.work_dir = Path(work_dir)
        self.labels = tuple(labels)
        self.keep = keep
        self.timeout_seconds = (
            float(timeout_seconds) if timeout_seconds is not None else job.timeout_minutes * 60.0
        )
        self._clock = clock
        self._deadline: float | None = None
        self._root: Path | None = None

    # ---- lifecycle ----

    def provision(self) -> Path:
        if self.job.runs_on not in self.labels:
            raise ProvisionFailure(
                f"no runner matches label '{self.job.runs_on}'",
                job=self.job.name,
                available=", ".join(self.labels),
            )
        try:
            self.work_dir.mkdir(parents=True, exist_ok=True)
            root = Path(tempfile.mkdtemp(prefix=f"{_slug(self.job.name)}-", dir=self.work_dir))
            (root / "workspace").mkdir()
        except OSError as e:
            raise ProvisionFailure(
                "could not create sandbox workspace",
                job=self.job.name,
                work_dir=str(self.work_dir),
                error=str(e),
            ) from e

        self._root = root
        self._deadline = self._clock() + self.timeout_seconds
        return self.workspace

    def teardown(self) -> None:
        if self._root is not None and not self.keep:
            shutil.rmtree(self._root, ignore_errors=True)
        self._root = None

    def __enter__(self) -> "LocalSandbox":
        self.provision()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.teardown()

    # ---- state ----

    @property
    def root(self) -> Path:
        if self._root is None:
            raise RuntimeError("sandbox is not provisioned")
        return self._root

    @property
    def workspace(self) -> Path:
        return self.root / "workspace"

    @property
    def tool_dir(self) -> Path:
        """Per-sandbox scratch area for installed tools (not part of the checkout)."""
        p = self.root / "tools"
        p.mkdir(exist_ok=True)
        return p

    def remaining(self) -> float:
        if self._deadline is None:
            return self.timeout_seconds
        return self._deadline - self._clock()

    def base_env(self) -> Dict[str, str]:
        env = os.environ.copy()
        env.update(self.job.env)
        env["CI"] = "true"
        env["GITHUB_WORKSPACE"] = str(self.workspace)
        env["RUNNER_TEMP"] = str(self.tool_dir)
        return env

    # ---- execution ----

    def execute(
        self,
        argv: List[str],
        *,
        env: Optional[Mapping[str, str]] = None,
        cwd: str | None = None,
        step: str | None = None,
        redact: Callable[[str], str] | None = None,
    ) -> ExecResult:
        """
        Run `argv` inside the workspace. Never raises on a non-zero exit.

        `redact` is applied to the full output before it is cut to OUTPUT_TAIL.
        """
        redact = redact or (lambda s: s)
        remaining = self.remaining()
        if remaining <= 0:
            raise TimeoutExceeded(job=self.job.name, step=step, timeout_minutes=self.timeout_seconds / 60)

        run_cwd = (self.workspace / (cwd or ".")).resolve()
        if not run_cwd.exists():
            raise ProvisionFailure(
                "working directory not found",
                job=self.job.name,
                step=step,
                cwd=str(run_cwd),
            )

        full_env = self.base_env()
        if env:
            full_env.update(env)

        start = time.monotonic()
        try:
            proc = subprocess.Popen(
                argv,
                cwd=str(run_cwd),
                env=full_env,
                encoding="utf-8",
                errors="replace",
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                start_new_session=True,  # so a timeout can kill the whole process group
            )
        except FileNotFoundError as e:
            raise ProvisionFailure(
                f"executable not found: {argv[0]}",
                job=self.job.name,
                step=step,
            ) from e

        try:
            out, _ = proc.communicate(timeout=remaining)
        except subprocess.TimeoutExpired:
            _kill_group(proc)
            out, _ = proc.communicate()
            raise TimeoutExceeded(
                job=self.job.name,
                step=step,
                timeout_minutes=self.timeout_seconds / 60,
                output=redact(out or "")[-OUTPUT_TAIL:],
            )

        return ExecResult(
            exit_code=proc.returncode,
            output=redact(out or "")[-OUTPUT_TAIL:],
            duration=time.monotonic() - start,
        )


def _kill_group(proc: subprocess.Popen) -> None:
    try:
        if hasattr(os, "killpg"):
            os.killpg(proc.pid, signal.SIGKILL)
        else:
            proc.kill()
    except ProcessLookupError:
        pass


def _slug(name: str) -> str:
    return "".join(c if c.isalnum() or c in "-_" else "-" for c in name.lower()).strip("-") or "job"


SandboxFactory = Callable[[Job], LocalSandbox]


def sandbox_factory(settings: Settings) -> SandboxFactory:
    """Bind configuration once; the runner calls the result per job."""

    def make(job: Job) -> LocalSandbox:
        return LocalSandbox(
            job,
            work_dir=settings.work_dir,
            labels=settings.runner_labels,
            keep=settings.keep_sandbox,
        )

    return make
