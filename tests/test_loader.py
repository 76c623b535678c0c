from pathlib import Path

import pytest

from prcheck.errors import WorkflowError
from prcheck.loader import load_workflow, parse_workflow
from prcheck.model import EventType, Trigger

ROOT = Path(__file__).resolve().parents[1]
BETA_LINTS_YML = ROOT / ".github" / "workflows" / "lints-beta.yml"
BETA_LINTS_PY = ROOT / "beta_lints_workflow.py"


def test_loads_the_beta_lints_workflow():
    wf = load_workflow(BETA_LINTS_YML)

    assert wf.name == "Beta lints"
    assert wf.on == (Trigger(EventType.PULL_REQUEST),)
    (job,) = wf.jobs
    assert job.name == "Clippy (beta)"
    assert job.timeout_minutes == 30
    assert job.runs_on == "ubuntu-latest"
    assert job.continue_on_error is True

    checkout, toolchain, clippy = job.steps
    assert checkout.uses == "actions/checkout@v2"
    assert toolchain.with_ == {"toolchain": "beta", "components": "clippy", "override": "true"}
    assert clippy.name == "Run Clippy (beta)"
    assert clippy.continue_on_error is True
    assert clippy.with_["token"] == "${{ secrets.GITHUB_TOKEN }}"


def test_python_workflow_matches_yaml():
    assert load_workflow(BETA_LINTS_PY) == load_workflow(BETA_LINTS_YML)


def test_on_forms():
    steps = {"j": {"steps": [{"run": "true"}]}}

    assert parse_workflow({"on": ["push", "pull_request"], "jobs": steps}).on == (
        Trigger(EventType.PUSH),
        Trigger(EventType.PULL_REQUEST),
    )
    assert parse_workflow({"on": {"pull_request": {"types": ["opened"]}, "push": None}, "jobs": steps}).on == (
        Trigger(EventType.PULL_REQUEST, types=("opened",)),
        Trigger(EventType.PUSH),
    )


def test_job_defaults():
    wf = parse_workflow({"on": "push", "jobs": {"build": {"steps": [{"run": "make"}]}}}, default_name="ci")

    (job,) = wf.jobs
    assert wf.name == "ci"
    assert job.name == "build"
    assert job.timeout_minutes == 360
    assert job.continue_on_error is False


def test_shell_from_step_and_job_defaults():
    wf = parse_workflow({
        "on": "push",
        "jobs": {"build": {
            "defaults": {"run": {"shell": "bash"}},
            "steps": [{"run": "make"}, {"run": "print(1)", "shell": "python"}],
        }},
    })

    (job,) = wf.jobs
    assert job.shell == "bash"
    assert [s.shell for s in job.steps] == [None, "python"]


@pytest.mark.parametrize(
    "data, match",
    [
        ([], "mapping"),
        ({"jobs": {"j": {"steps": [{"run": "x"}]}}}, "'on'"),
        ({"on": "push"}, "at least one job"),
        ({"on": "issue_comment", "jobs": {"j": {"steps": [{"run": "x"}]}}}, "unsupported"),
        ({"on": "push", "jobs": {"j": {"steps": []}}}, "at least one step"),
        ({"on": "push", "jobs": {"j": {"steps": [{"run": "x", "uses": "a/b@v1"}]}}}, "exactly one"),
        ({"on": "push", "jobs": {"j": {"steps": [{"name": "nothing"}]}}}, "exactly one"),
        ({"on": "push", "jobs": {"j": {"runs-on": ["a", "b"], "steps": [{"run": "x"}]}}}, "single label"),
        ({"on": "push", "jobs": {"j": {"timeout-minutes": 0, "steps": [{"run": "x"}]}}}, "positive integer"),
        ({"on": "push", "jobs": {"j": {"continue-on-error": "maybe", "steps": [{"run": "x"}]}}}, "boolean"),
        ({"on": "push", "jobs": {"j": {"steps": [{"run": "x", "with": ["a"]}]}}}, "mapping"),
        ({"on": "push", "jobs": {"j": {"steps": [{"run": "x", "shell": "fish"}]}}}, "unsupported shell"),
        ({"on": "push", "jobs": {"j": {"steps": [{"uses": "a/b@v1", "shell": "bash"}]}}}, "only applies to run steps"),
        ({"on": "push", "jobs": {"j": {"defaults": {"run": "bash"}, "steps": [{"run": "x"}]}}}, "defaults.run"),
        ({"on": "push", "jobs": {"j": {"defaults": {"run": {"shell": "zsh"}}, "steps": [{"run": "x"}]}}}, "unsupported shell"),
    ],
)
def test_malformed_workflows(data, match):
    with pytest.raises(WorkflowError, match=match):
        parse_workflow(data)


def test_rejects_unknown_file_type(tmp_path):
    path = tmp_path / "workflow.toml"
    path.write_text("")

    with pytest.raises(WorkflowError):
        load_workflow(path)


def test_rejects_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yml"
    path.write_text("on: [push\njobs: {")

    with pytest.raises(WorkflowError, match="YAML"):
        load_workflow(path)


def test_python_workflow_must_return_a_workflow(tmp_path):
    path = tmp_path / "wf.py"
    path.write_text("def workflow():\n    return []\n")

    with pytest.raises(WorkflowError):
        load_workflow(path)
