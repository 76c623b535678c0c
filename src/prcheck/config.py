from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Mapping, Optional, Tuple

DEFAULT_WORKFLOW = ".github/workflows/lints-beta.yml"
DEFAULT_WORK_DIR = ".prcheck/work"
DEFAULT_API_URL = "https://api.github.com"


def default_runner_labels(platform: str = sys.platform) -> Tuple[str, ...]:
    """runs-on labels this host can satisfy."""
    if platform.startswith("linux"):
        host = ("ubuntu-latest", "ubuntu-24.04", "ubuntu-22.04", "linux")
    elif platform == "darwin":
        host = ("macos-latest", "macos")
    elif platform.startswith("win"):
        host = ("windows-latest", "windows")
    else:
        host = ()
    return host + ("self-hosted", "local")


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    work_dir: Path = Path(DEFAULT_WORK_DIR)
    keep_sandbox: bool = False
    runner_labels: Tuple[str, ...] = field(default_factory=default_runner_labels)
    workflow: Path = Path(DEFAULT_WORKFLOW)
    neutral_exit_code: int = 0
    api_url: str = DEFAULT_API_URL
    repository: Optional[str] = None
    token: Optional[str] = None

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        labels = env.get("PRCHECK_RUNNER_LABELS")
        runner_labels = (
            tuple(l.strip() for l in labels.split(",") if l.strip())
            if labels
            else default_runner_labels()
        )

        try:
            neutral_exit_code = int(env.get("PRCHECK_NEUTRAL_EXIT_CODE", "0"))
        except ValueError:
            raise ValueError(
                f"PRCHECK_NEUTRAL_EXIT_CODE must be an integer, got {env.get('PRCHECK_NEUTRAL_EXIT_CODE')!r}"
            ) from None

        return cls(
            work_dir=Path(env.get("PRCHECK_WORK_DIR", DEFAULT_WORK_DIR)),
            keep_sandbox=_flag(env.get("PRCHECK_KEEP_SANDBOX")),
            runner_labels=runner_labels,
            workflow=Path(env.get("PRCHECK_WORKFLOW", DEFAULT_WORKFLOW)),
            neutral_exit_code=neutral_exit_code,
            api_url=env.get("GITHUB_API_URL", DEFAULT_API_URL).rstrip("/"),
            repository=env.get("GITHUB_REPOSITORY") or None,
            token=env.get("GITHUB_TOKEN") or None,
        )

    def override(self, **changes) -> "Settings":
        """Apply CLI options; None means "not given"."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})
