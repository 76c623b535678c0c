# cli.py
from __future__ import annotations

import subprocess
import sys
from pathlib import Path
from typing import Optional

import click

from prcheck.checks import ChecksAPIError, publishers_for
from prcheck.config import Settings
from prcheck.errors import CIError
from prcheck.git_facts.git import head_sha, repo_root
from prcheck.loader import load_workflow
from prcheck.model import Conclusion, Event, Workflow
from prcheck.reporter import publish
from prcheck.runner import run_workflow
from prcheck.sandbox import sandbox_factory
from prcheck.secrets import SecretStore
from prcheck.trigger import evaluate, load_event, parse_event
from prcheck.ui.console import Console, get_console, set_console

WORKFLOW_DIR = Path(".github/workflows")


def find_workflow_files(root: Path = Path(".")) -> list[Path]:
    """
    Find all workflow files under .github/workflows, plus a prcheck_workflow.py.

    Returns:
        List of Path objects for workflow files
    """
    workflow_files = []
    default_py = root / "prcheck_workflow.py"
    if default_py.exists():
        workflow_files.append(default_py)

    wf_dir = root / WORKFLOW_DIR
    if wf_dir.is_dir():
        workflow_files.extend(wf_dir.glob("*.yml"))
        workflow_files.extend(wf_dir.glob("*.yaml"))

    return sorted(workflow_files)


def discover_workflow(workflow_arg: str | None) -> Path:
    """
    Discover workflow file from argument or default.

    Raises:
        SystemExit: If workflow cannot be found or multiple workflows exist
    """
    console = get_console()

    if workflow_arg:
        workflow_path = Path(workflow_arg)
        if not workflow_path.exists():
            console.print_error(
                "Workflow file not found",
                f"Could not find workflow file: {workflow_arg}",
                suggestion="Specify an existing workflow file:\n  prcheck run --workflow .github/workflows/lints.yml",
            )
            sys.exit(1)
        return workflow_path

    workflow_files = find_workflow_files()

    if len(workflow_files) == 0:
        console.print_error(
            "No workflow file found",
            "Could not find any workflow files.",
            details=[
                "Looked for:",
                "  prcheck_workflow.py",
                "  .github/workflows/*.yml",
            ],
            suggestion="Specify a workflow explicitly:\n  prcheck run --workflow my_workflow.yml",
        )
        sys.exit(1)

    if len(workflow_files) > 1:
        file_list = "\n".join(f"  {f}" for f in workflow_files)
        console.print_error(
            "Multiple workflow files found",
            "Found multiple workflow files. Please specify which one to use:",
            details=[file_list],
            suggestion="Specify a workflow explicitly:\n  prcheck run --workflow .github/workflows/lints-beta.yml",
        )
        sys.exit(1)

    return workflow_files[0]


def _local_source() -> str:
    try:
        return str(repo_root())
    except (subprocess.CalledProcessError, FileNotFoundError):
        return str(Path(".").resolve())


def build_event(event_name: str, event_path: Optional[str], action: Optional[str]) -> Event:
    """Event from a payload file, or a synthetic one describing the local checkout."""
    if event_path:
        return load_event(event_name, event_path)

    metadata = {}
    try:
        metadata["sha"] = head_sha()
    except (subprocess.CalledProcessError, FileNotFoundError):
        get_console().print_debug("not a git checkout; event carries no sha")
    return parse_event({"type": event_name, "action": action, "metadata": metadata})


def _load(workflow: Optional[str]) -> tuple[Path, Workflow]:
    path = discover_workflow(workflow)
    return path, load_workflow(path)


def event_options(fn):
    fn = click.option("--action", default="opened", show_default=True, help="Event action (ignored with --event-path)")(fn)
    fn = click.option("--event-path", envvar="GITHUB_EVENT_PATH", default=None, help="JSON event payload file")(fn)
    fn = click.option("--event", "event_name", envvar="GITHUB_EVENT_NAME", default="pull_request", show_default=True, help="Event type")(fn)
    fn = click.option("--workflow", default=None, help="Workflow file (.yml/.yaml/.py)")(fn)
    return fn


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.pass_context
def cli(ctx, debug):
    """prcheck: run pull-request check workflows locally."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug


@cli.command()
@event_options
@click.option("--source", default=None, help="Repository to check out (defaults to the current git checkout)")
@click.option("--secret", "secrets", multiple=True, help="Secret as NAME=VALUE (repeatable)")
@click.option("--work-dir", default=None, type=click.Path(path_type=Path), help="Parent directory for sandboxes")
@click.option("--keep-sandbox/--no-keep-sandbox", default=None, help="Keep sandbox directories after the run")
@click.option("--label", "labels", multiple=True, help="Accepted runs-on label (repeatable)")
@click.option("--json-output", default=None, type=click.Path(path_type=Path), help="Write the run result as JSON")
@click.option("--neutral-exit-code", default=None, type=int, help="Exit code for a neutral conclusion")
@click.pass_context
def run(ctx, workflow, event_name, event_path, action, source, secrets, work_dir, keep_sandbox,
        labels, json_output, neutral_exit_code):
    """Run a workflow for an event and publish its conclusion."""
    console = get_console()

    try:
        settings = Settings.from_env().override(
            work_dir=work_dir,
            keep_sandbox=keep_sandbox,
            runner_labels=tuple(labels) or None,
            neutral_exit_code=neutral_exit_code,
        )
        path, wf = _load(workflow)
        console.print_debug(f"workflow: {path}")
        event = build_event(event_name, event_path, action)
        store = SecretStore.from_env().with_overrides(secrets)

        result = run_workflow(
            wf,
            event,
            sandbox_factory=sandbox_factory(settings),
            secrets=store,
            source=source or _local_source(),
            console=console,
        )
        publish(result, publishers_for(settings, event, json_output=json_output, console=console))

    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(130)
    except CIError as e:
        console.print_error(e.kind.replace("_", " ").capitalize(), e.message,
                            details=[f"{k}={v}" for k, v in e.details.items()])
        sys.exit(1)
    except ChecksAPIError as e:
        console.print_error("Publishing failed", str(e),
                            suggestion="Check GITHUB_TOKEN permissions (checks: write).")
        sys.exit(1)
    except Exception as e:
        console.print_exception(e)
        sys.exit(1)

    if result.conclusion is Conclusion.FAILURE:
        sys.exit(1)
    if result.conclusion is Conclusion.NEUTRAL and result.triggered:
        sys.exit(settings.neutral_exit_code)


@cli.command()
@event_options
def plan(workflow, event_name, event_path, action):
    """Evaluate the trigger and print the jobs that would run."""
    console = get_console()
    try:
        _path, wf = _load(workflow)
        event = build_event(event_name, event_path, action)
    except CIError as e:
        console.print_error(e.kind.replace("_", " ").capitalize(), e.message,
                            details=[f"{k}={v}" for k, v in e.details.items()])
        sys.exit(1)

    decision = evaluate(wf, event)
    console.print_trigger(decision.should_run, decision.reason)
    for job in decision.jobs:
        console.print_plan_job(
            f"{job.name} [{job.runs_on}, {job.timeout_minutes}m"
            + (", continue-on-error" if job.continue_on_error else "") + "]",
            [
                s.display_name + (" (continue-on-error)" if s.continue_on_error else "")
                for s in job.steps
            ],
        )


@cli.command()
@click.option("--workflow", default=None, help="Workflow file (.yml/.yaml/.py)")
def validate(workflow):
    """Parse a workflow file and report problems."""
    console = get_console()
    try:
        path, wf = _load(workflow)
    except CIError as e:
        console.print_error("Invalid workflow", e.message,
                            details=[f"{k}={v}" for k, v in e.details.items()])
        sys.exit(1)

    triggers = ", ".join(t.event.value + (f"{list(t.types)}" if t.types else "") for t in wf.on)
    console.print_info(f"{path}: OK")
    console.print_info(f"  name: {wf.name}")
    console.print_info(f"  on: {triggers}")
    console.print_info(f"  jobs: {len(wf.jobs)}")
    for job in wf.jobs:
        console.print_plan_job(job.name, [s.display_name for s in job.steps])


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8080, show_default=True, type=int)
def serve(host, port):
    """Receive webhook events and run the configured workflow."""
    import uvicorn

    uvicorn.run("prcheck.server:app", host=host, port=port)


if __name__ == "__main__":
    cli()
