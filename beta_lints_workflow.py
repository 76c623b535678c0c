# beta_lints_workflow.py
# The beta clippy lint, written with the Python helpers instead of YAML.
# Not auto-discovered (only prcheck_workflow.py is); run it with:
#   prcheck run --workflow beta_lints_workflow.py
from __future__ import annotations

from prcheck.dsl import job, uses, wf


def workflow():
    return wf(
        "Beta lints",
        job(
            "Clippy (beta)",
            uses("actions/checkout@v2"),
            uses(
                "actions-rs/toolchain@v1",
                with_={"toolchain": "beta", "components": "clippy", "override": True},
            ),
            uses(
                "actions-rs/clippy-check@v1",
                "Run Clippy (beta)",
                with_={
                    "name": "Clippy (beta)",
                    "token": "${{ secrets.GITHUB_TOKEN }}",
                    "args": "--all-features --all-targets",
                },
                continue_on_error=True,
            ),
            timeout_minutes=30,
            runs_on="ubuntu-latest",
            continue_on_error=True,
        ),
        on="pull_request",
    )
