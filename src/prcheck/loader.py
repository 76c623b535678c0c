# loader.py
# Workflow loading: YAML files in the platform's workflow syntax, or Python
# files built with prcheck.dsl.

from __future__ import annotations

import runpy
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple

import yaml

from .actions.shell import SHELLS
from .errors import WorkflowError
from .model import EventType, Job, Step, Trigger, Workflow


def load_workflow(path: str | Path) -> Workflow:
    """
    Load a workflow from a .yml/.yaml or .py file.

    A Python file must define either:
      - workflow() -> Workflow
      - WORKFLOW = Workflow(...)
    """
    wf_path = Path(path).expanduser().resolve()
    if not wf_path.exists():
        raise FileNotFoundError(f"Workflow file not found: {wf_path}")

    if wf_path.suffix in (".yml", ".yaml"):
        with open(wf_path, encoding="utf-8") as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise WorkflowError("workflow is not valid YAML", path=str(wf_path), error=str(e)) from e
        return parse_workflow(data, default_name=wf_path.stem)

    if wf_path.suffix == ".py":
        return _load_python_workflow(wf_path)

    raise WorkflowError(
        f"Workflow must be a .yml, .yaml or .py file, got: {wf_path.name}",
        path=str(wf_path),
    )


def _load_python_workflow(wf_path: Path) -> Workflow:
    module_name = f"prcheck_workflow_{wf_path.stem}"
    globals_dict = runpy.run_path(str(wf_path), run_name=module_name)

    wf = None
    if "workflow" in globals_dict and callable(globals_dict["workflow"]):
        wf = globals_dict["workflow"]()
    elif "WORKFLOW" in globals_dict:
        wf = globals_dict["WORKFLOW"]

    if not isinstance(wf, Workflow):
        raise WorkflowError(
            "Workflow file must return/define a Workflow. "
            "Define workflow() -> Workflow or WORKFLOW = wf(...).",
            path=str(wf_path),
        )
    return wf


# ----------------------------------------------------------------------
# YAML -> model
# ----------------------------------------------------------------------

def parse_workflow(data: Any, *, default_name: str = "workflow") -> Workflow:
    if not isinstance(data, Mapping):
        raise WorkflowError("workflow must be a mapping")

    # YAML 1.1 reads a bare `on` key as boolean True
    on = data["on"] if "on" in data else data.get(True)
    if on is None:
        raise WorkflowError("workflow has no 'on' triggers")

    jobs_raw = data.get("jobs")
    if not isinstance(jobs_raw, Mapping) or not jobs_raw:
        raise WorkflowError("workflow must define at least one job under 'jobs'")

    jobs = tuple(_parse_job(str(job_id), spec) for job_id, spec in jobs_raw.items())
    return Workflow(
        name=str(data.get("name") or default_name),
        on=_parse_triggers(on),
        jobs=jobs,
    )


def _event_type(name: Any) -> EventType:
    try:
        return EventType(str(name))
    except ValueError:
        supported = ", ".join(e.value for e in EventType)
        raise WorkflowError(f"unsupported trigger event {name!r}", supported=supported) from None


def _parse_triggers(on: Any) -> Tuple[Trigger, ...]:
    if isinstance(on, str):
        return (Trigger(_event_type(on)),)

    if isinstance(on, list):
        return tuple(Trigger(_event_type(e)) for e in on)

    if isinstance(on, Mapping):
        triggers: List[Trigger] = []
        for event, filters in on.items():
            types = None
            if isinstance(filters, Mapping) and "types" in filters:
                raw = filters["types"]
                types = (raw,) if isinstance(raw, str) else tuple(str(t) for t in raw or [])
            elif filters is not None and not isinstance(filters, Mapping):
                raise WorkflowError(f"filters for '{event}' must be a mapping")
            triggers.append(Trigger(_event_type(event), types=types))
        return tuple(triggers)

    raise WorkflowError("'on' must be a string, a list or a mapping")


def _as_bool(value: Any, *, where: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise WorkflowError(f"{where}: continue-on-error must be a boolean, got {value!r}")


def _as_str_map(value: Any, *, where: str) -> Dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise WorkflowError(f"{where} must be a mapping")
    out: Dict[str, str] = {}
    for k, v in value.items():
        if isinstance(v, bool):
            out[str(k)] = "true" if v else "false"
        elif v is None:
            out[str(k)] = ""
        else:
            out[str(k)] = str(v)
    return out


def _as_shell(value: Any, *, where: str) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or value not in SHELLS:
        raise WorkflowError(f"{where}: unsupported shell {value!r}, expected one of: {', '.join(SHELLS)}")
    return value


def _parse_step(job_id: str, index: int, spec: Any) -> Step:
    where = f"jobs.{job_id}.steps[{index}]"
    if not isinstance(spec, Mapping):
        raise WorkflowError(f"{where} must be a mapping")

    uses = spec.get("uses")
    run = spec.get("run")
    if bool(uses) == bool(run):
        raise WorkflowError(f"{where} must set exactly one of 'uses' or 'run'")
    if uses and "shell" in spec:
        raise WorkflowError(f"{where}: shell only applies to run steps")

    return Step(
        name=str(spec.get("name") or ""),
        uses=str(uses) if uses else None,
        run=str(run) if run else None,
        with_=_as_str_map(spec.get("with"), where=f"{where}.with"),
        env=_as_str_map(spec.get("env"), where=f"{where}.env"),
        continue_on_error=_as_bool(spec.get("continue-on-error", False), where=where),
        shell=_as_shell(spec.get("shell"), where=where),
    )


def _parse_job(job_id: str, spec: Any) -> Job:
    where = f"jobs.{job_id}"
    if not isinstance(spec, Mapping):
        raise WorkflowError(f"{where} must be a mapping")

    steps_raw = spec.get("steps")
    if not isinstance(steps_raw, list) or not steps_raw:
        raise WorkflowError(f"{where} must have at least one step")

    runs_on = spec.get("runs-on", "ubuntu-latest")
    if not isinstance(runs_on, str):
        raise WorkflowError(f"{where}.runs-on must be a single label")

    defaults = spec.get("defaults") or {}
    run_defaults = (defaults.get("run") or {}) if isinstance(defaults, Mapping) else defaults
    if not isinstance(run_defaults, Mapping):
        raise WorkflowError(f"{where}.defaults.run must be a mapping")

    timeout = spec.get("timeout-minutes", 360)
    if isinstance(timeout, bool) or not isinstance(timeout, int) or timeout <= 0:
        raise WorkflowError(f"{where}.timeout-minutes must be a positive integer, got {timeout!r}")

    return Job(
        name=str(spec.get("name") or job_id),
        steps=tuple(_parse_step(job_id, i, s) for i, s in enumerate(steps_raw)),
        timeout_minutes=timeout,
        runs_on=runs_on,
        continue_on_error=_as_bool(spec.get("continue-on-error", False), where=where),
        env=_as_str_map(spec.get("env"), where=f"{where}.env"),
        shell=_as_shell(run_defaults.get("shell"), where=f"{where}.defaults.run"),
    )
