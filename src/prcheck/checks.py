# checks.py
from __future__ import annotations

import json
import urllib.error
import urllib.request
from pathlib import Path
from typing import List, Optional
from urllib.parse import urljoin

from .config import Settings
from .model import Event, RunResult
from .reporter import ConsolePublisher, JsonPublisher, Publisher, summarize
from .ui.console import Console, get_console


class ChecksAPIError(Exception):
    """Raised when a check-run request fails."""
    pass


class ChecksClient:
    """HTTP client for the platform's check-runs endpoint."""

    def __init__(self, api_url: str, repository: str, token: str):
        """
        Initialize API client.

        Args:
            api_url: Base URL of the REST API (e.g., "https://api.github.com")
            repository: "owner/repo"
            token: token allowed to write checks
        """
        if "/" not in repository:
            raise ValueError(f"repository must be 'owner/repo', got {repository!r}")
        self.api_url = api_url.rstrip("/")
        self.repository = repository
        self._token = token

    def __repr__(self) -> str:
        return f"ChecksClient(api_url={self.api_url!r}, repository={self.repository!r})"

    def _request(self, method: str, path: str, data: Optional[dict] = None) -> dict:
        """
        Make an HTTP request to the API.

        Raises:
            ChecksAPIError: If the request fails
        """
        url = urljoin(self.api_url + "/", path.lstrip("/"))

        req_headers = {
            "Accept": "application/vnd.github+json",
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

        req_data = None
        if data is not None:
            req_data = json.dumps(data).encode("utf-8")

        req = urllib.request.Request(url, data=req_data, headers=req_headers, method=method)

        try:
            with urllib.request.urlopen(req) as response:
                response_data = response.read().decode("utf-8")
                if response_data:
                    return json.loads(response_data)
                return {}
        except urllib.error.HTTPError as e:
            error_body = e.read().decode("utf-8") if e.fp else ""
            raise ChecksAPIError(f"API request failed: {e.code} {e.reason}. {error_body}")
        except urllib.error.URLError as e:
            raise ChecksAPIError(f"Network error: {e.reason}")
        except json.JSONDecodeError as e:
            raise ChecksAPIError(f"Invalid JSON response: {e}")

    def create_check_run(
        self,
        *,
        name: str,
        head_sha: str,
        conclusion: str,
        title: str,
        summary: str,
    ) -> dict:
        return self._request(
            "POST",
            f"/repos/{self.repository}/check-runs",
            data={
                "name": name,
                "head_sha": head_sha,
                "status": "completed",
                "conclusion": conclusion,
                "output": {"title": title, "summary": summary},
            },
        )


class GitHubChecksPublisher:
    """Publish one completed check run per job."""

    def __init__(self, client: ChecksClient, head_sha: str, console: Console | None = None):
        self.client = client
        self.head_sha = head_sha
        self.console = console or get_console()

    def publish(self, result: RunResult) -> None:
        for job in result.jobs:
            failed = sum(1 for s in job.steps if s.failed)
            title = f"{job.conclusion.value}: {failed} of {len(job.steps)} step(s) failed"
            resp = self.client.create_check_run(
                name=job.job,
                head_sha=self.head_sha,
                conclusion=job.conclusion.value,
                title=title,
                summary=summarize(job),
            )
            self.console.print_published("check-run", f"{job.job}: {resp.get('html_url') or job.conclusion.value}")


def publishers_for(
    settings: Settings,
    event: Event,
    *,
    json_output: str | Path | None = None,
    console: Console | None = None,
) -> List[Publisher]:
    """Console always; JSON file when asked; check runs when the platform is configured."""
    console = console or get_console()
    publishers: List[Publisher] = [ConsolePublisher(console)]
    if json_output:
        publishers.append(JsonPublisher(json_output))

    repository = event.repository or settings.repository
    if settings.token and repository and event.sha:
        client = ChecksClient(settings.api_url, repository, settings.token)
        publishers.append(GitHubChecksPublisher(client, event.sha, console))
    elif settings.token:
        console.print_debug("check runs disabled: no repository or head sha for this event")
    return publishers
