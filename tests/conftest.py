from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Ensure tests always import the local src tree, not an older installed wheel.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))

from prcheck.model import Event, EventType  # noqa: E402
from prcheck.sandbox import LocalSandbox  # noqa: E402
from prcheck.ui.console import Console  # noqa: E402

LABELS = ("ubuntu-latest", "local")


@pytest.fixture
def work_dir(tmp_path: Path) -> Path:
    return tmp_path / "work"


@pytest.fixture
def sandboxes(work_dir: Path):
    """sandboxes(**kw) -> factory building LocalSandbox with test labels."""

    def factory_for(**kw):
        def make(job):
            return LocalSandbox(job, work_dir=work_dir, labels=LABELS, **kw)
        return make

    return factory_for


@pytest.fixture
def console() -> Console:
    return Console()


@pytest.fixture
def pr_event() -> Event:
    return Event(
        type=EventType.PULL_REQUEST,
        action="opened",
        metadata={
            "action": "opened",
            "number": 7,
            "pull_request": {"number": 7, "head": {"sha": "abc123", "ref": "feature"}},
            "repository": {"full_name": "octo/widgets", "clone_url": "https://example.invalid/octo/widgets.git"},
        },
    )
