# git.py
# Small, focused wrapper around the Git CLI.
# Read-only queries about the repository a run is started from; the checkout
# action builds its own commands so they run inside the sandbox deadline.

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import List, Optional


def _git(args: list[str], cwd: Optional[str | Path] = None) -> str:
    """
    Execute a git command and return its stdout as a clean string.

    Raises:
        subprocess.CalledProcessError: git exited non-zero
        FileNotFoundError: git is not installed
    """
    out = subprocess.check_output(
        ["git", *args],
        cwd=str(cwd) if cwd is not None else None,
        text=True,
        stderr=subprocess.DEVNULL,
    )
    return out.strip()


def repo_root(cwd: Optional[str | Path] = None) -> Path:
    """Absolute path to the root of the Git repository containing `cwd`."""
    return Path(_git(["rev-parse", "--show-toplevel"], cwd=cwd))


def head_sha(cwd: Optional[str | Path] = None) -> str:
    return _git(["rev-parse", "HEAD"], cwd=cwd)


def clone_argv(source: str, dest: str | Path, *, depth: int | None = None) -> List[str]:
    argv = ["git", "clone", "--quiet", "--no-tags"]
    if depth:
        # --depth is ignored for local paths unless the file:// transport is used
        argv.extend(["--depth", str(depth)])
        if Path(source).exists():
            source = Path(source).resolve().as_uri()
    argv.extend([source, str(dest)])
    return argv


def checkout_argv(ref: str) -> List[str]:
    return ["git", "checkout", "--quiet", "--detach", ref]
