from __future__ import annotations

from typing import Any, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, Header, HTTPException, Request
from pydantic import BaseModel

from .checks import publishers_for
from .config import Settings
from .errors import TriggerRejected
from .loader import load_workflow
from .model import Event, Workflow
from .reporter import publish
from .runner import run_workflow
from .sandbox import sandbox_factory
from .secrets import SecretStore
from .trigger import evaluate, parse_event

app = FastAPI(title="prcheck webhook receiver")

# -------------------- Schemas --------------------

class DecisionResponse(BaseModel):
    should_run: bool
    workflow: str
    jobs: list[str]
    reason: str

# -------------------- Dependencies --------------------

def get_settings() -> Settings:
    return Settings.from_env()

def get_workflow(settings: Settings = Depends(get_settings)) -> Workflow:
    return load_workflow(settings.workflow)

# -------------------- Background run --------------------

def execute_run(workflow: Workflow, event: Event, settings: Settings) -> None:
    result = run_workflow(
        workflow,
        event,
        sandbox_factory=sandbox_factory(settings),
        secrets=SecretStore.from_env(),
        source=event.clone_url,
    )
    publish(result, publishers_for(settings, event))

# -------------------- Endpoints --------------------

@app.get("/healthz")
async def healthz() -> dict[str, Any]:
    return {"ok": True}

@app.post("/webhook", response_model=DecisionResponse)
async def webhook(
    request: Request,
    background: BackgroundTasks,
    x_github_event: Optional[str] = Header(default=None),
    settings: Settings = Depends(get_settings),
    workflow: Workflow = Depends(get_workflow),
):
    if x_github_event == "ping":
        return DecisionResponse(should_run=False, workflow=workflow.name, jobs=[], reason="ping")

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="body must be JSON")

    try:
        event = parse_event({"type": x_github_event, "payload": body})
    except TriggerRejected as e:
        raise HTTPException(status_code=400, detail=e.message)

    decision = evaluate(workflow, event)
    if decision.should_run:
        # runs after the response is sent; jobs still execute one at a time
        background.add_task(execute_run, workflow, event, settings)

    return DecisionResponse(
        should_run=decision.should_run,
        workflow=workflow.name,
        jobs=[j.name for j in decision.jobs],
        reason=decision.reason,
    )
