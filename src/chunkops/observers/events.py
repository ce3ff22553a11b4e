# src/chunkops/observers/events.py

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
    run_id: str       # correlates all events in a single provisioning run
    cluster: str      # cluster resource name
    namespace: str

    def dict(self) -> Dict[str, Any]:
        return asdict(self)


def new_ctx(cluster: str, namespace: str, run_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
        "run_id": run_id or str(uuid.uuid4()),
        "cluster": cluster,
        "namespace": namespace,
    }


# ---------------------------------------------------------------------
# Planner
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class PlanComputed(BaseEvent):
    jobs: List[str]

@dataclass(frozen=True)
class PlanFailed(BaseEvent):
    error: str

@dataclass(frozen=True)
class JobSubmitted(BaseEvent):
    name: str
    node: str
    device: str

@dataclass(frozen=True)
class JobSubmitFailed(BaseEvent):
    name: str
    node: str
    device: str
    error: str


# ---------------------------------------------------------------------
# Format barrier
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class FormatWaitStarted(BaseEvent):
    jobs: int
    timeout_s: float

@dataclass(frozen=True)
class FormatSucceeded(BaseEvent):
    jobs: int

@dataclass(frozen=True)
class FormatTimedOut(BaseEvent):
    jobs: int
    timeout_s: float


# ---------------------------------------------------------------------
# Pipeline stages & summary
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ProvisionStarted(BaseEvent):
    nodes: List[str]
    devices: List[str]

@dataclass(frozen=True)
class StageSucceeded(BaseEvent):
    stage: str

@dataclass(frozen=True)
class StageFailed(BaseEvent):
    stage: str
    error: str

@dataclass(frozen=True)
class ProvisionSummary(BaseEvent):
    status: str          # "OK" or "FAILED"
    chunkservers: int
    error: Optional[str] = None
