# actions/shell.py
from __future__ import annotations

from typing import Dict, List, Optional

from ..errors import ProvisionFailure
from ..sandbox import ExecResult
from .registry import ActionContext

DEFAULT_SHELL = "sh"

# same invocations the hosted runner uses for its named shells
SHELLS: Dict[str, List[str]] = {
    "sh": ["sh", "-e", "-c"],
    "bash": ["bash", "--noprofile", "--norc", "-e", "-o", "pipefail", "-c"],
    "python": ["python3", "-c"],
}


def shell_argv(shell: Optional[str]) -> List[str]:
    """Interpreter argv for a named shell; the script is appended by the caller."""
    try:
        return list(SHELLS[shell or DEFAULT_SHELL])
    except KeyError:
        raise ValueError(f"unsupported shell {shell!r}, expected one of: {', '.join(SHELLS)}") from None


def run_script(ctx: ActionContext, script: str) -> ExecResult:
    """Run a `run:` step. The script was interpolated by the runner."""
    try:
        argv = shell_argv(ctx.step.shell or ctx.job.shell)
    except ValueError as e:
        raise ProvisionFailure(str(e), job=ctx.job.name, step=ctx.step.display_name) from e
    ctx.require_tool(argv[0])
    return ctx.run([*argv, script])
