# actions/rust.py
# Rust toolchain install + clippy, the two actions the beta lint job is made of.

from __future__ import annotations

import re
import shlex
from typing import List

from ..sandbox import ExecResult
from .registry import ActionContext, register_action


def _split_list(raw: str) -> List[str]:
    return [p for p in re.split(r"[,\s]+", raw.strip()) if p]


def toolchain_commands(toolchain: str, *, components: List[str], profile: str,
                       override: bool, default: bool) -> List[List[str]]:
    install = ["rustup", "toolchain", "install", toolchain, "--profile", profile]
    for c in components:
        install.extend(["--component", c])
    commands = [install]
    if default:
        commands.append(["rustup", "default", toolchain])
    if override:
        commands.append(["rustup", "override", "set", toolchain])
    return commands


@register_action("actions-rs/toolchain")
def toolchain(ctx: ActionContext) -> ExecResult:
    ctx.require_tool("rustup")
    commands = toolchain_commands(
        ctx.param("toolchain", "stable"),
        components=_split_list(ctx.param("components")),
        profile=ctx.param("profile", "minimal"),
        override=ctx.flag("override"),
        default=ctx.flag("default"),
    )
    return ctx.run_all(commands)


def clippy_command(args: str, toolchain: str | None = None) -> List[str]:
    argv = ["cargo"]
    if toolchain:
        argv.append(f"+{toolchain}")
    argv.append("clippy")
    argv.extend(shlex.split(args))
    return argv


@register_action("actions-rs/clippy-check")
def clippy_check(ctx: ActionContext) -> ExecResult:
    # `token` is only needed by the hosted action to post annotations;
    # the reporter publishes the outcome here, so it is accepted and unused.
    ctx.require_tool("cargo")
    return ctx.run_all([clippy_command(ctx.param("args"), ctx.param("toolchain") or None)])
