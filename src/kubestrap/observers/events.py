# src/kubestrap/observers/events.py

from __future__ import annotations
from dataclasses import dataclass, asdict
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone
import uuid


# ---------------------------------------------------------------------
# Base context and helper
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class BaseEvent:
    ts: str           # ISO timestamp
    run_id: str       # correlates all events in a single bootstrap run
    host: str         # target host

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def now_ts() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def new_ctx(host: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": now_ts(),
        "run_id": run_id or str(uuid.uuid4()),
        "host": host,
    }


# ---------------------------------------------------------------------
# Run lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class RunStarted(BaseEvent):
    steps: List[str]

@dataclass(frozen=True)
class RunSummary(BaseEvent):
    status: str                   # "success" | "failed"
    applied: int
    skipped: int
    failed_step: Optional[str] = None
    error: Optional[str] = None
    check_failed: int = 0         # steps skipped because their check errored


# ---------------------------------------------------------------------
# Step lifecycle
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class StepStarted(BaseEvent):
    index: int
    name: str

@dataclass(frozen=True)
class StepSkipped(BaseEvent):
    index: int
    name: str

@dataclass(frozen=True)
class PreconditionDiagnostic(BaseEvent):
    index: int
    name: str
    error: str

@dataclass(frozen=True)
class StepApplied(BaseEvent):
    index: int
    name: str
    duration_ms: int

@dataclass(frozen=True)
class StepFailed(BaseEvent):
    index: int
    name: str
    kind: str                     # "ActionFailed" | "PostconditionFailed"
    error: str
