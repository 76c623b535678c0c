# actions/checkout.py
from __future__ import annotations

from ..errors import ProvisionFailure
from ..git_facts.git import checkout_argv, clone_argv
from ..sandbox import ExecResult
from .registry import ActionContext, register_action


@register_action("actions/checkout")
def checkout(ctx: ActionContext) -> ExecResult:
    """
    Clone the repository under test into the sandbox workspace.

    Inputs (all optional):
      repository   path or URL, defaults to the run's source
      ref          commit/branch, defaults to the event's head sha
      fetch-depth  "1" by default, "0" for full history
      path         sub-directory of the workspace to clone into
    """
    source = ctx.param("repository") or ctx.source
    if not source:
        raise ProvisionFailure(
            "nothing to check out: no repository input and no run source",
            job=ctx.job.name,
            step=ctx.step.display_name,
        )

    dest = ctx.param("path") or "."
    workspace = ctx.sandbox.workspace.resolve()
    if not (workspace / dest).resolve().is_relative_to(workspace):
        raise ProvisionFailure(
            "checkout path must stay inside the workspace",
            job=ctx.job.name,
            step=ctx.step.display_name,
            path=dest,
        )

    ctx.require_tool("git")

    ref = ctx.param("ref") or ctx.event.sha
    try:
        depth = int(ctx.param("fetch-depth", "1"))
    except ValueError:
        depth = 1
    # a specific commit may not be reachable from a shallow clone of the default branch
    if ref:
        depth = 0

    commands = [clone_argv(source, ctx.sandbox.workspace / dest, depth=depth or None)]
    if ref:
        commands.append(checkout_argv(ref))
    # clone runs from the workspace root, checkout from inside the clone
    first = ctx.run(commands[0])
    if first.exit_code != 0 or len(commands) == 1:
        return ExecResult(exit_code=first.exit_code, output=ctx.output, duration=first.duration)
    second = ctx.run(commands[1], cwd=dest)
    return ExecResult(
        exit_code=second.exit_code,
        output=ctx.output,
        duration=first.duration + second.duration,
    )
