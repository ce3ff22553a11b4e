# src/chunkops/config/settings.py

from __future__ import annotations
from dataclasses import dataclass
import os


@dataclass(frozen=True)
class RuntimeSettings:
    format_timeout_seconds: float
    format_poll_seconds: float
    pool_timeout_seconds: float
    rollout_timeout_seconds: int
    kube_context: str | None


def load_runtime_settings() -> RuntimeSettings:
    # defaults match production; override via env for test clusters
    return RuntimeSettings(
        format_timeout_seconds=float(os.getenv("CHUNKOPS_FORMAT_TIMEOUT", 24 * 60 * 60)),
        format_poll_seconds=float(os.getenv("CHUNKOPS_FORMAT_POLL", 20)),
        pool_timeout_seconds=float(os.getenv("CHUNKOPS_POOL_TIMEOUT", 10 * 60)),
        rollout_timeout_seconds=int(os.getenv("CHUNKOPS_ROLLOUT_TIMEOUT", 15 * 60)),
        kube_context=os.getenv("CHUNKOPS_KUBE_CONTEXT") or None,
    )
