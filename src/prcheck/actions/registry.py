# actions/registry.py
from __future__ import annotations

import os
import re
import shutil
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Mapping, Optional

from ..errors import ProvisionFailure
from ..model import Event, Job, Step
from ..sandbox import ExecResult, LocalSandbox
from ..secrets import SecretStore

TOOL_HINTS = {
    "git": "Install Git or fix PATH.",
    "rustup": "Install rustup from https://rustup.rs or fix PATH.",
    "cargo": "Install a Rust toolchain with rustup or fix PATH.",
    "sh": "A POSIX shell is required for run: steps.",
    "bash": "Install bash or use shell: sh.",
}

_REF = re.compile(r"^(?P<name>[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+(?:/[A-Za-z0-9_./-]+)?)@(?P<version>[A-Za-z0-9_.\-/]+)$")


@dataclass(frozen=True)
class ActionRef:
    """`owner/name@version` as written in a step's `uses:`."""
    name: str
    version: str

    @classmethod
    def parse(cls, ref: str) -> "ActionRef":
        m = _REF.match(ref.strip())
        if not m:
            raise ValueError(f"invalid action reference {ref!r}, expected owner/name@version")
        return cls(name=m.group("name").lower(), version=m.group("version"))

    def __str__(self) -> str:
        return f"{self.name}@{self.version}"


@dataclass
class ActionContext:
    """Everything a handler may touch while one step runs."""
    job: Job
    step: Step
    sandbox: LocalSandbox
    event: Event
    params: Dict[str, str]          # bound `with:` overlay, dropped after the step
    env: Dict[str, str]             # bound step env
    source: Optional[str] = None    # repository to check out (path or URL)
    secrets: SecretStore = field(default_factory=SecretStore)
    _outputs: List[str] = field(default_factory=list)

    def param(self, name: str, default: str = "") -> str:
        return self.params.get(name, default)

    def flag(self, name: str, default: bool = False) -> bool:
        raw = self.params.get(name)
        if raw is None or raw == "":
            return default
        return raw.strip().lower() in ("true", "1", "yes")

    def require_tool(self, tool: str) -> str:
        path = self.env.get("PATH") or self.sandbox.base_env().get("PATH") or os.defpath
        found = shutil.which(tool, path=path)
        if not found:
            raise ProvisionFailure(
                f"{tool} is not available",
                job=self.job.name,
                step=self.step.display_name,
                tool=tool,
                hint=TOOL_HINTS.get(tool, f"Install {tool} or fix PATH."),
            )
        return found

    def run(self, argv: List[str], *, cwd: str | None = None) -> ExecResult:
        env = dict(self.env)
        # action inputs are exposed the same way the hosted runner does it
        for k, v in self.params.items():
            env[f"INPUT_{k.upper().replace(' ', '_')}"] = v
        res = self.sandbox.execute(
            argv, env=env, cwd=cwd, step=self.step.display_name, redact=self.secrets.redact
        )
        self._outputs.append(f"$ {self.secrets.redact(' '.join(argv))}\n{res.output}")
        return res

    def run_all(self, commands: List[List[str]], *, cwd: str | None = None) -> ExecResult:
        """Run commands in order, stopping at the first non-zero exit."""
        total = 0.0
        last = ExecResult(exit_code=0, output="", duration=0.0)
        for argv in commands:
            last = self.run(argv, cwd=cwd)
            total += last.duration
            if last.exit_code != 0:
                break
        return ExecResult(exit_code=last.exit_code, output=self.output, duration=total)

    @property
    def output(self) -> str:
        return "\n".join(self._outputs)


Handler = Callable[[ActionContext], ExecResult]

_HANDLERS: Dict[str, Handler] = {}


def register_action(name: str) -> Callable[[Handler], Handler]:
    """Decorator: register a handler for `owner/name` (any version)."""
    def deco(fn: Handler) -> Handler:
        _HANDLERS[name.lower()] = fn
        return fn
    return deco


def registered_actions() -> Mapping[str, Handler]:
    _load_builtins()
    return dict(_HANDLERS)


def resolve(ref: ActionRef, *, job: str | None = None, step: str | None = None) -> Handler:
    _load_builtins()
    handler = _HANDLERS.get(ref.name)
    if handler is None:
        raise ProvisionFailure(
            f"unknown action '{ref}'",
            job=job,
            step=step,
            known=", ".join(sorted(_HANDLERS)),
        )
    return handler


def _load_builtins() -> None:
    # Import for side effects (decorators). Kept lazy to avoid a cycle with this module.
    from . import checkout, rust, shell  # noqa: F401
