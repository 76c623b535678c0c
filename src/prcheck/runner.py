# runner.py
from __future__ import annotations

import time
from typing import Dict, List, Optional, Tuple

from .actions.registry import ActionContext, ActionRef, resolve
from .actions.shell import run_script
from .errors import CIError, ProvisionFailure, StepFailure, TimeoutExceeded
from .model import Event, Job, JobResult, RunResult, Step, StepResult, StepStatus, Workflow
from .reporter import aggregate, conclude
from .sandbox import ExecResult, LocalSandbox, SandboxFactory
from .secrets import SecretStore, bind_parameters, interpolate
from .trigger import evaluate
from .ui.console import Console, get_console

# event ---> trigger ---> job (ordered steps) ---> conclusion ---> publish


# ----------------------------------------------------------------------
# Execution primitives
# ----------------------------------------------------------------------

def _invoke(ctx: ActionContext) -> Tuple[ExecResult, str]:
    """Dispatch a step to its handler. Returns (result, command label)."""
    step = ctx.step
    if step.run:
        script = interpolate(step.run, ctx.secrets, ctx.event)
        return run_script(ctx, script), step.run

    try:
        ref = ActionRef.parse(step.uses or "")
    except ValueError as e:
        raise ProvisionFailure(str(e), job=ctx.job.name, step=step.display_name) from e
    handler = resolve(ref, job=ctx.job.name, step=step.display_name)
    return handler(ctx), str(ref)


def _run_step(
    job: Job,
    step: Step,
    sandbox: LocalSandbox,
    event: Event,
    secrets: SecretStore,
    source: Optional[str],
) -> Tuple[StepResult, Optional[CIError]]:
    """
    Run one step and record it.

    Returns (result, fatal) where fatal is the error that must stop the job,
    or None when the loop may continue (success or a guarded failure).
    """
    name = step.display_name
    start = time.monotonic()

    # scoped overlay: bound values live only as long as this call
    env: Dict[str, str] = bind_parameters(job.env, secrets, event)
    env.update(bind_parameters(step.env, secrets, event))
    ctx = ActionContext(
        job=job,
        step=step,
        sandbox=sandbox,
        event=event,
        params=bind_parameters(step.with_, secrets, event),
        env=env,
        source=source,
        secrets=secrets,
    )

    try:
        res, cmd = _invoke(ctx)
    except TimeoutExceeded as e:
        # always fatal, guarded or not
        return StepResult(
            name=name,
            status=StepStatus.FAILURE,
            guarded=False,
            error_kind="timeout",
            output=secrets.redact(e.output or ctx.output),
            duration=time.monotonic() - start,
        ), e
    except ProvisionFailure as e:
        # a step that cannot get its tool is a provisioning problem, not a lint result
        return StepResult(
            name=name,
            status=StepStatus.FAILURE,
            guarded=False,
            error_kind="provision_failure",
            output=secrets.redact(str(e)),
            duration=time.monotonic() - start,
        ), e

    output = secrets.redact(res.output)
    duration = time.monotonic() - start

    if res.exit_code == 0:
        return StepResult(
            name=name,
            status=StepStatus.SUCCESS,
            exit_code=0,
            output=output,
            duration=duration,
        ), None

    failure = StepFailure(job=job.name, step=name, cmd=cmd, exit_code=res.exit_code, output=output)
    result = StepResult(
        name=name,
        status=StepStatus.FAILURE,
        exit_code=res.exit_code,
        guarded=step.continue_on_error,
        error_kind="step_failure",
        output=output,
        duration=duration,
    )
    if step.continue_on_error:
        return result, None
    return result, failure


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def run_job(
    job: Job,
    event: Event,
    *,
    sandbox_factory: SandboxFactory,
    secrets: Optional[SecretStore] = None,
    source: Optional[str] = None,
    console: Optional[Console] = None,
) -> JobResult:
    """
    Provision a sandbox for `job`, run its steps strictly in order, conclude.

    Never raises for CI outcomes (provisioning, step failures, timeouts):
    those end up in the returned JobResult.
    """
    console = console or get_console()
    secrets = secrets or SecretStore()

    console.print_job_start(job.name, job.runs_on)

    steps: List[StepResult] = []
    fatal: Optional[CIError] = None

    sandbox = sandbox_factory(job)
    try:
        workspace = sandbox.provision()
    except ProvisionFailure as e:
        fatal = e
    else:
        console.print_debug(f"[{job.name}] sandbox: {workspace}")
        try:
            for step in job.steps:
                console.print_step(step.display_name)
                result, fatal = _run_step(job, step, sandbox, event, secrets, source)
                steps.append(result)
                console.print_step_result(result)
                if fatal is not None:
                    break
        finally:
            sandbox.teardown()

    job_result = JobResult(
        job=job.name,
        steps=tuple(steps),
        conclusion=conclude(job, steps, fatal),
        error=secrets.redact(str(fatal)) if fatal is not None else None,
    )
    console.print_job_result(job_result)
    return job_result


def run_workflow(
    workflow: Workflow,
    event: Event,
    *,
    sandbox_factory: SandboxFactory,
    secrets: Optional[SecretStore] = None,
    source: Optional[str] = None,
    console: Optional[Console] = None,
) -> RunResult:
    """Evaluate the trigger, then run the selected jobs one after another."""
    console = console or get_console()

    decision = evaluate(workflow, event)
    console.print_trigger(decision.should_run, decision.reason)
    if not decision.should_run:
        return RunResult(
            workflow=workflow.name,
            event=event.type,
            jobs=(),
            conclusion=aggregate(()),
            triggered=False,
        )

    label = event.type.value
    if event.pull_request_number:
        label += f" #{event.pull_request_number}"
    if event.action:
        label += f" ({event.action})"
    console.print_run_started(
        workflow=workflow.name,
        event=label,
        job_count=len(decision.jobs),
    )

    results: List[JobResult] = []
    for job in decision.jobs:
        results.append(
            run_job(
                job,
                event,
                sandbox_factory=sandbox_factory,
                secrets=secrets,
                source=source,
                console=console,
            )
        )

    return RunResult(
        workflow=workflow.name,
        event=event.type,
        jobs=tuple(results),
        conclusion=aggregate(r.conclusion for r in results),
    )
