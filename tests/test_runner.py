import itertools
import shutil

import pytest

from prcheck.actions.registry import register_action
from prcheck.dsl import job, sh, uses, wf
from prcheck.model import Conclusion, Event, EventType, StepStatus
from prcheck.runner import run_job, run_workflow
from prcheck.secrets import SecretStore


@register_action("tests/echo-input")
def _echo_input(ctx):
    return ctx.run(["sh", "-c", 'echo "value=$INPUT_VALUE"'])


def _statuses(result):
    return [(s.name, s.status) for s in result.steps]


def test_guarded_lint_failure_in_guarded_job_is_neutral(sandboxes, pr_event, console):
    lint_job = job(
        "clippy-beta",
        sh("install toolchain", "true"),
        sh("lint", "exit 1", continue_on_error=True),
        timeout_minutes=30,
        continue_on_error=True,
    )

    result = run_job(lint_job, pr_event, sandbox_factory=sandboxes(), console=console)

    assert _statuses(result) == [
        ("install toolchain", StepStatus.SUCCESS),
        ("lint", StepStatus.FAILURE),
    ]
    assert result.steps[1].guarded is True
    assert result.steps[1].exit_code == 1
    assert result.conclusion is Conclusion.NEUTRAL


def test_unguarded_failure_aborts_remaining_steps(tmp_path, sandboxes, pr_event, console):
    marker = tmp_path / "third-ran"
    three = job(
        "three",
        sh("one", "true"),
        sh("two", "exit 2"),
        sh("three", f"touch '{marker}'"),
    )

    result = run_job(three, pr_event, sandbox_factory=sandboxes(), console=console)

    assert _statuses(result) == [("one", StepStatus.SUCCESS), ("two", StepStatus.FAILURE)]
    assert result.steps[1].guarded is False
    assert not marker.exists()
    assert result.conclusion is Conclusion.FAILURE
    assert "exit=2" in result.error


def test_guarded_failure_does_not_stop_later_steps(tmp_path, sandboxes, pr_event, console):
    marker = tmp_path / "later-ran"
    j = job(
        "guarded",
        sh("flaky", "exit 5", continue_on_error=True),
        sh("later", f"touch '{marker}'"),
    )

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert marker.exists()
    assert [s.status for s in result.steps] == [StepStatus.FAILURE, StepStatus.SUCCESS]
    # tolerated, but not hidden
    assert result.conclusion is Conclusion.NEUTRAL


def test_all_steps_succeeding_is_success(sandboxes, pr_event, console):
    j = job("ok", sh("a", "true"), sh("b", "echo hi"))

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert result.conclusion is Conclusion.SUCCESS
    assert "hi" in result.steps[1].output


def test_provisioning_failure_records_no_steps(sandboxes, pr_event, console):
    j = job("elsewhere", sh("a", "true"), runs_on="windows-2019")

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert result.steps == ()
    assert result.conclusion is Conclusion.FAILURE
    assert "windows-2019" in result.error


def test_provisioning_failure_in_guarded_job_is_neutral(sandboxes, pr_event, console):
    j = job("elsewhere", sh("a", "true"), runs_on="windows-2019", continue_on_error=True)

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert result.steps == ()
    assert result.conclusion is Conclusion.NEUTRAL


def test_timeout_aborts_even_a_guarded_step(tmp_path, sandboxes, pr_event, console):
    marker = tmp_path / "after-timeout"
    j = job(
        "slow",
        sh("sleep", "sleep 5", continue_on_error=True),
        sh("after", f"touch '{marker}'"),
    )

    result = run_job(j, pr_event, sandbox_factory=sandboxes(timeout_seconds=0.5), console=console)

    assert len(result.steps) == 1
    assert result.steps[0].error_kind == "timeout"
    assert result.steps[0].guarded is False
    assert not marker.exists()
    assert result.conclusion is Conclusion.FAILURE


def test_timeout_in_guarded_job_is_neutral(sandboxes, pr_event, console):
    j = job("slow", sh("sleep", "sleep 5"), continue_on_error=True)

    result = run_job(j, pr_event, sandbox_factory=sandboxes(timeout_seconds=0.5), console=console)

    assert result.conclusion is Conclusion.NEUTRAL


@pytest.mark.parametrize(
    "outcomes",
    list(itertools.product([("true", False), ("exit 1", False), ("exit 1", True)], repeat=2)),
)
def test_guarded_job_never_publishes_failure(outcomes, sandboxes, pr_event, console):
    steps = [sh(f"s{i}", cmd, continue_on_error=guarded) for i, (cmd, guarded) in enumerate(outcomes)]
    j = job("guarded-job", *steps, continue_on_error=True)

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert result.conclusion is not Conclusion.FAILURE


def test_unknown_action_is_fatal_even_when_guarded(sandboxes, pr_event, console):
    j = job(
        "unknown",
        uses("nobody/nothing@v1", continue_on_error=True),
        sh("never", "true"),
    )

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert len(result.steps) == 1
    assert result.steps[0].error_kind == "provision_failure"
    assert result.conclusion is Conclusion.FAILURE


def test_secrets_are_injected_and_redacted(sandboxes, pr_event, console):
    secrets = SecretStore({"TOKEN": "s3cr3t-value"})
    j = job(
        "secret",
        sh("print", "echo token=${{ secrets.TOKEN }}; exit 1"),
    )

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), secrets=secrets, console=console)

    out = result.steps[0].output
    assert "token=***" in out
    assert "s3cr3t-value" not in out
    assert "s3cr3t-value" not in (result.error or "")


def test_action_parameters_are_bound_per_step(sandboxes, pr_event, console):
    j = job(
        "inputs",
        uses("tests/echo-input@v1", with_={"value": "${{ github.sha }}"}),
    )

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert result.conclusion is Conclusion.SUCCESS
    assert "value=abc123" in result.steps[0].output


def test_sandbox_is_removed_after_the_job(work_dir, sandboxes, pr_event, console):
    run_job(job("ok", sh("a", "touch file")), pr_event, sandbox_factory=sandboxes(), console=console)

    assert list(work_dir.iterdir()) == []


def test_run_workflow_skips_untriggered_events(sandboxes, console):
    workflow = wf("Beta lints", job("lint", sh("lint", "true")))

    result = run_workflow(workflow, Event(type=EventType.PUSH), sandbox_factory=sandboxes(), console=console)

    assert result.triggered is False
    assert result.jobs == ()


def test_run_workflow_runs_jobs_in_order_and_takes_the_worst(tmp_path, sandboxes, pr_event, console):
    log = tmp_path / "order.log"
    workflow = wf(
        "two jobs",
        job("first", sh("a", f"echo first >> '{log}'")),
        job("second", sh("b", f"echo second >> '{log}'; exit 1"), continue_on_error=True),
    )

    result = run_workflow(workflow, pr_event, sandbox_factory=sandboxes(), console=console)

    assert log.read_text().split() == ["first", "second"]
    assert [j.conclusion for j in result.jobs] == [Conclusion.SUCCESS, Conclusion.NEUTRAL]
    assert result.conclusion is Conclusion.NEUTRAL


def test_secret_cut_by_the_output_tail_is_still_redacted(sandboxes, pr_event, console):
    secret = "SUPERSECRETTOKEN0123456789"
    j = job(
        "long-output",
        sh("print", "printf '%s' '${{ secrets.TOKEN }}'; head -c 3990 /dev/zero | tr '\\0' x; exit 1"),
    )

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), secrets=SecretStore({"TOKEN": secret}), console=console)

    out = result.steps[0].output
    assert out.startswith("***x")
    assert "0123456789" not in out
    assert "0123456789" not in result.error


def test_binary_output_is_recorded_not_raised(sandboxes, pr_event, console):
    j = job("binary", sh("binary", "printf '\\377\\376'; exit 1"), continue_on_error=True)

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert result.steps[0].exit_code == 1
    assert result.conclusion is Conclusion.NEUTRAL


@pytest.mark.skipif(shutil.which("bash") is None, reason="bash not installed")
def test_step_shell_selects_bash(sandboxes, pr_event, console):
    j = job(
        "bash",
        sh("array", 'a=(one two); echo "second=${a[1]}"', shell="bash"),
        sh("pipefail", "false | true", shell="bash"),
    )

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert "second=two" in result.steps[0].output
    assert result.steps[1].status is StepStatus.FAILURE
    assert result.conclusion is Conclusion.FAILURE


@pytest.mark.skipif(shutil.which("bash") is None, reason="bash not installed")
def test_job_shell_is_the_default_for_run_steps(sandboxes, pr_event, console):
    j = job(
        "bash-default",
        sh("bash only", '[[ -n "$BASH_VERSION" ]]; set -o | grep -q "pipefail.*on"'),
        shell="bash",
    )

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert result.conclusion is Conclusion.SUCCESS


def test_unknown_shell_is_fatal(sandboxes, pr_event, console):
    j = job("fish", sh("x", "true", shell="fish", continue_on_error=True), sh("never", "true"))

    result = run_job(j, pr_event, sandbox_factory=sandboxes(), console=console)

    assert len(result.steps) == 1
    assert result.steps[0].error_kind == "provision_failure"
    assert "unsupported shell" in result.error


def test_run_header_names_the_pull_request(sandboxes, pr_event, console, capsys):
    run_workflow(wf("w", job("ok", sh("a", "true"))), pr_event, sandbox_factory=sandboxes(), console=console)

    assert "Event: pull_request #7 (opened)" in capsys.readouterr().out
