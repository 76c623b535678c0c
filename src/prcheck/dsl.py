# src/prcheck/dsl.py
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Union

from .model import EventType, Job, Step, Trigger, Workflow


# ---------------------------------------------------------------------
# Step helpers
# ---------------------------------------------------------------------

def sh(
    name: str,
    cmd: str,
    *,
    env: Optional[Dict[str, str]] = None,
    continue_on_error: bool = False,
    shell: Optional[str] = None,
) -> Step:
    """Create a shell step. `shell` overrides the job's shell ("sh", "bash", "python")."""
    return Step(name=name, run=cmd, env=env or {}, continue_on_error=continue_on_error, shell=shell)


def uses(
    ref: str,
    name: str = "",
    *,
    with_: Optional[Dict[str, Union[str, bool, int]]] = None,
    continue_on_error: bool = False,
    env: Optional[Dict[str, str]] = None,
) -> Step:
    """
    Create an action step.

        uses("actions-rs/toolchain@v1", with_={"toolchain": "beta", "override": True})
    """
    params: Dict[str, str] = {}
    for k, v in (with_ or {}).items():
        if isinstance(v, bool):
            v = "true" if v else "false"
        params[k] = str(v)
    return Step(name=name, uses=ref, with_=params, env=env or {}, continue_on_error=continue_on_error)


# ---------------------------------------------------------------------
# Job / workflow helpers
# ---------------------------------------------------------------------

def job(
    name: str,
    *steps: Step,
    timeout_minutes: int = 360,
    runs_on: str = "ubuntu-latest",
    continue_on_error: bool = False,
    env: Optional[Dict[str, str]] = None,
    shell: Optional[str] = None,
) -> Job:
    if not steps:
        raise ValueError(f"job({name!r}) must have at least one step")
    return Job(
        name=name,
        steps=tuple(steps),
        timeout_minutes=timeout_minutes,
        runs_on=runs_on,
        continue_on_error=continue_on_error,
        env=env or {},
        shell=shell,
    )


def on(event: Union[str, EventType], *types: str) -> Trigger:
    """Trigger helper: on("pull_request"), on("pull_request", "opened")."""
    return Trigger(EventType(event), types=tuple(types) or None)


def wf(name: str, *jobs: Job, on: Union[str, Trigger, Iterable[Union[str, Trigger]]] = "pull_request") -> Workflow:
    """
    Workflow definition helper.

        from prcheck.dsl import wf, job, uses, sh

        def workflow():
            return wf("Beta lints", job(...), on="pull_request")
    """
    if isinstance(on, (str, Trigger)):
        on = [on]
    triggers: List[Trigger] = [t if isinstance(t, Trigger) else Trigger(EventType(t)) for t in on]
    if not triggers:
        raise ValueError(f"wf({name!r}) needs at least one trigger")
    if not jobs:
        raise ValueError(f"wf({name!r}) must have at least one job")
    return Workflow(name=name, on=tuple(triggers), jobs=tuple(jobs))
