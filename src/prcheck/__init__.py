from .dsl import job, on, sh, uses, wf
from .loader import load_workflow
from .model import Conclusion, Event, EventType, Job, Step, Workflow
from .runner import run_job, run_workflow
from .trigger import evaluate, parse_event

__all__ = [
    "job", "on", "sh", "uses", "wf",
    "load_workflow", "run_job", "run_workflow", "evaluate", "parse_event",
    "Conclusion", "Event", "EventType", "Job", "Step", "Workflow",
]
