import pytest
from fastapi.testclient import TestClient

from prcheck import server
from prcheck.config import Settings
from prcheck.dsl import job, sh, wf


@pytest.fixture
def client(monkeypatch, tmp_path):
    calls = []
    workflow = wf("Beta lints", job("Clippy (beta)", sh("lint", "true")))
    settings = Settings(work_dir=tmp_path / "work")

    server.app.dependency_overrides[server.get_workflow] = lambda: workflow
    server.app.dependency_overrides[server.get_settings] = lambda: settings
    monkeypatch.setattr(server, "execute_run", lambda wf_, event, s: calls.append((wf_, event, s)))

    with TestClient(server.app) as c:
        c.calls = calls
        yield c

    server.app.dependency_overrides.clear()


def test_healthz(client):
    assert client.get("/healthz").json() == {"ok": True}


def test_pull_request_opened_schedules_a_run(client):
    resp = client.post(
        "/webhook",
        json={"action": "opened", "pull_request": {"head": {"sha": "abc"}}},
        headers={"X-GitHub-Event": "pull_request"},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["should_run"] is True
    assert body["jobs"] == ["Clippy (beta)"]
    assert len(client.calls) == 1
    _wf, event, _settings = client.calls[0]
    assert event.sha == "abc"


def test_push_is_ignored(client):
    resp = client.post("/webhook", json={"ref": "refs/heads/main"}, headers={"X-GitHub-Event": "push"})

    assert resp.status_code == 200
    assert resp.json()["should_run"] is False
    assert client.calls == []


def test_ping_is_acknowledged(client):
    resp = client.post("/webhook", json={"zen": "hi"}, headers={"X-GitHub-Event": "ping"})

    assert resp.status_code == 200
    assert resp.json()["reason"] == "ping"


def test_missing_event_header_is_rejected(client):
    resp = client.post("/webhook", json={"action": "opened"})

    assert resp.status_code == 400
    assert client.calls == []


def test_unsupported_event_is_rejected(client):
    resp = client.post("/webhook", json={}, headers={"X-GitHub-Event": "issue_comment"})

    assert resp.status_code == 400


def test_non_json_body_is_rejected(client):
    resp = client.post(
        "/webhook",
        content=b"not json",
        headers={"X-GitHub-Event": "pull_request", "Content-Type": "application/json"},
    )

    assert resp.status_code == 400
