# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/k8s/interface.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

from .owner import OwnerInfo


@dataclass(frozen=True)
class JobStatus:
    active: int = 0
    succeeded: int = 0
    failed: int = 0
    required: int = 1   # completions needed before the job counts as done


@dataclass
class JobHandle:
    name: str
    namespace: str
    status: JobStatus = field(default_factory=JobStatus)
    manifest: Optional[dict] = None


@dataclass(frozen=True)
class NodeInfo:
    name: str
    hostname: str


class TaskStore(Protocol):
    """
    Contract for the Job/ConfigMap/Node operations the provisioning core needs.
    Implementations raise chunkops.k8s.errors.NotFoundError / AlreadyExistsError
    for the idempotent cases and StoreError for everything else.
    """

    def get_job(self, namespace: str, name: str) -> JobHandle: ...

    def create_job(self, manifest: dict) -> JobHandle: ...

    def delete_job(
        self,
        namespace: str,
        name: str,
        *,
        propagation: str = "Foreground",
        grace_period_seconds: int = 0,
    ) -> None: ...

    def create_config_map(
        self,
        namespace: str,
        name: str,
        data: Dict[str, str],
        *,
        owner: Optional[OwnerInfo] = None,
    ) -> None: ...

    def apply_config_map(
        self,
        namespace: str,
        name: str,
        data: Dict[str, str],
        *,
        owner: Optional[OwnerInfo] = None,
    ) -> None: ...

    def get_config_map(self, namespace: str, name: str) -> Dict[str, str]: ...

    def get_node_hostnames(self) -> Dict[str, str]: ...

    def list_valid_nodes(self, hostnames: List[str]) -> List[NodeInfo]: ...

    def resolve_node_address(self, node_name: str) -> str: ...


class ConditionSink(Protocol):
    def update_condition(
        self,
        namespace: str,
        name: str,
        condition_type: str,
        status: str,
        reason: str,
        message: str,
    ) -> None: ...
