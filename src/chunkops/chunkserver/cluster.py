# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/chunkserver/cluster.py

from __future__ import annotations

import logging
from typing import Callable, Dict, Optional, TypeVar

from ..config.models import ClusterSpec
from ..errors import BarrierTimeoutError, ConfigurationError, ProvisionError, StageError
from ..k8s import conditions as cond
from ..k8s.interface import ConditionSink, TaskStore
from ..k8s.jobs import AggregateJobStatus, start_job_watcher
from ..k8s.owner import OwnerInfo
from ..observers.dispatcher import EventBus
from ..observers.events import (
    FormatSucceeded,
    FormatTimedOut,
    FormatWaitStarted,
    ProvisionStarted,
    ProvisionSummary,
    StageFailed,
    StageSucceeded,
    new_ctx,
)
from .launcher import ServiceLauncher
from .models import ProvisionPlan
from .planner import declared_nodes, start_provisioning_over_nodes, validate_storage
from .pool import LOGICAL_POOL, PHYSICAL_POOL, PoolCreator

log = logging.getLogger("chunkops")

T = TypeVar("T")

FORMAT_TIMEOUT_SECONDS = 24 * 60 * 60
FORMAT_POLL_SECONDS = 20

# pipeline stages, in order
VALIDATE_SPEC = "ValidateSpec"
PROVISIONING = "Provisioning"
AWAIT_FORMAT = "AwaitFormat"
CREATE_PHYSICAL_POOL = "CreatePhysicalPool"
START_SERVICES = "StartServices"
CREATE_LOGICAL_POOL = "CreateLogicalPool"
READY = "Ready"
FAILED = "Failed"


class ChunkserverCluster:
    """
    Brings the chunkservers of one cluster from nothing to serving:
      - format every device (one job per node/device) and wait for all jobs
      - create the physical pool
      - start one chunkserver per device and wait until they are available
      - create the logical pool
    Each stage runs once; the first failure aborts the rest.
    """

    def __init__(
        self,
        store: TaskStore,
        spec: ClusterSpec,
        *,
        pool_creator: PoolCreator,
        launcher: ServiceLauncher,
        conditions: Optional[ConditionSink] = None,
        owner: Optional[OwnerInfo] = None,
        bus: Optional[EventBus] = None,
        run_id: Optional[str] = None,
        format_timeout_seconds: float = FORMAT_TIMEOUT_SECONDS,
        format_poll_seconds: float = FORMAT_POLL_SECONDS,
    ):
        self.store = store
        self.spec = spec
        self.pool_creator = pool_creator
        self.launcher = launcher
        self.conditions = conditions
        self.owner = owner
        self.bus = bus or EventBus()
        self.run_ctx = new_ctx(cluster=spec.name, namespace=spec.namespace, run_id=run_id)
        self.format_timeout_seconds = format_timeout_seconds
        self.format_poll_seconds = format_poll_seconds
        self.state = VALIDATE_SPEC
        self.failed_stage: Optional[str] = None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _condition(self, condition_type: str, reason: str, message: str) -> None:
        if self.conditions is None:
            return
        try:
            self.conditions.update_condition(
                self.spec.namespace, self.spec.name, condition_type, cond.CONDITION_TRUE, reason, message
            )
        except Exception as e:
            log.warning("failed to report condition %s: %s", condition_type, e)

    def _stage(self, stage: str, fn: Callable[[], T]) -> T:
        self.state = stage
        try:
            result = fn()
        except Exception as e:
            self.failed_stage = stage
            self.bus.emit(StageFailed(stage=stage, error=str(e), **self.run_ctx))
            if isinstance(e, (ConfigurationError, BarrierTimeoutError, StageError)):
                raise
            raise StageError(stage, str(e)) from e
        self.bus.emit(StageSucceeded(stage=stage, **self.run_ctx))
        return result

    def _await_format(self, plan: ProvisionPlan) -> None:
        jobs = plan.jobs()
        self.bus.emit(FormatWaitStarted(jobs=len(jobs), timeout_s=self.format_timeout_seconds, **self.run_ctx))
        if not jobs:
            self.bus.emit(FormatSucceeded(jobs=0, **self.run_ctx))
            return

        chn = start_job_watcher(
            AggregateJobStatus(self.store, jobs),
            name=f"{self.spec.name}-format",
            interval=self.format_poll_seconds,
            timeout=self.format_timeout_seconds,
        )
        # blocks until every format job succeeded or the deadline fired
        if not chn.get():
            # TODO: delete the format jobs that were created
            self.bus.emit(FormatTimedOut(jobs=len(jobs), timeout_s=self.format_timeout_seconds, **self.run_ctx))
            raise BarrierTimeoutError(
                f"format jobs did not complete within {self.format_timeout_seconds}s"
            )
        self.bus.emit(FormatSucceeded(jobs=len(jobs), **self.run_ctx))

    # ------------------------------------------------------------------
    # entrypoint
    # ------------------------------------------------------------------

    def start(self, node_ip_map: Dict[str, str]) -> ProvisionPlan:
        log.info("start running chunkserver in namespace %r", self.spec.namespace)
        storage = self.spec.storage
        self.bus.emit(ProvisionStarted(
            nodes=declared_nodes(self.spec),
            devices=[d.name for d in storage.devices],
            **self.run_ctx,
        ))

        plan = ProvisionPlan()
        try:
            self._stage(VALIDATE_SPEC, lambda: validate_storage(self.spec))

            log.info("starting to prepare the chunk file")
            plan = self._stage(PROVISIONING, lambda: start_provisioning_over_nodes(
                self.store, self.spec, node_ip_map,
                owner=self.owner, bus=self.bus, run_ctx=self.run_ctx,
            ))
            self._condition(cond.CONDITION_TYPE_FORMATED_READY, cond.REASON_FORMATING_CHUNKFILE_POOL,
                            "Formating chunkfilepool")

            self._stage(AWAIT_FORMAT, lambda: self._await_format(plan))
            self._condition(cond.CONDITION_TYPE_FORMATED_READY, cond.REASON_FORMAT_CHUNKFILE_POOL,
                            "Formating chunkfilepool succeeded")
            log.info("all format jobs completed")

            self._stage(CREATE_PHYSICAL_POOL, lambda: self.pool_creator.create_pool(
                PHYSICAL_POOL, node_ip_map, plan.configs))
            log.info("create physical pool succeeded")

            self._stage(START_SERVICES, lambda: self.launcher.start_services(plan.configs))

            self._stage(CREATE_LOGICAL_POOL, lambda: self.pool_creator.create_pool(
                LOGICAL_POOL, node_ip_map, plan.configs))
            log.info("create logical pool succeeded")

        except ProvisionError as e:
            self.state = FAILED
            self.bus.emit(ProvisionSummary(status="FAILED", chunkservers=len(plan.configs),
                                           error=str(e), **self.run_ctx))
            raise

        self.state = READY
        self._condition(cond.CONDITION_TYPE_CHUNKSERVER_READY, cond.REASON_CHUNKSERVER_CLUSTER_CREATED,
                        "Chunkserver cluster has been created")
        self.bus.emit(ProvisionSummary(status="OK", chunkservers=len(plan.configs), **self.run_ctx))
        return plan
