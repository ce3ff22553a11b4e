# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/chunkserver/pool.py
from __future__ import annotations

import json
import logging
from typing import Dict, List, Optional, Protocol

from ..config.models import ClusterSpec
from ..errors import ProvisionError
from ..k8s.errors import StoreError
from ..k8s.interface import JobHandle, TaskStore
from ..k8s.jobs import AggregateJobStatus, run_replaceable_job, start_job_watcher
from ..k8s.owner import OwnerInfo
from .models import DeviceConfigRecord

log = logging.getLogger("chunkops")

PHYSICAL_POOL = "physical_pool"
LOGICAL_POOL = "logical_pool"

POOL_CONFIG_MAP_NAME = "curve-topology-conf"
POOL_CONFIG_MOUNT_DIR = "/curvebs/tools/conf"
POOL_JOB_NAME = "provision-pool"


class PoolCreator(Protocol):
    def create_pool(
        self,
        kind: str,
        node_ip_map: Dict[str, str],
        configs: List[DeviceConfigRecord],
    ) -> str: ...


def build_topology(spec: ClusterSpec, configs: List[DeviceConfigRecord]) -> dict:
    """
    Topology document read by curvebs-tool: one server entry per chunkserver,
    zones assigned round-robin by host sequence.
    """
    pool = spec.pool
    servers = []
    for cfg in configs:
        servers.append({
            "name": f"{cfg.node_name}_{cfg.replicas_sequence}",
            "internalip": cfg.node_ip,
            "internalport": cfg.port,
            "externalip": cfg.node_ip,
            "externalport": cfg.port,
            "zone": f"zone{cfg.host_sequence % pool.zone_num + 1}",
            "physicalpool": pool.physical_pool,
        })
    return {
        "servers": servers,
        "logicalpools": [{
            "name": pool.logical_pool,
            "physicalpool": pool.physical_pool,
            "segmentsize": pool.segment_size,
            "replicasnum": pool.replicas_num,
            "copysetnum": pool.copyset_num,
            "zonenum": pool.zone_num,
            "scatterwidth": pool.scatter_width,
            "type": 0,
        }],
    }


def make_pool_job(spec: ClusterSpec, kind: str, owner: Optional[OwnerInfo] = None) -> dict:
    op = "create_physicalpool" if kind == PHYSICAL_POOL else "create_logicalpool"
    name = f"{POOL_JOB_NAME}-{kind.replace('_', '-')}"
    job = {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {
            "name": name,
            "namespace": spec.namespace,
            "labels": {"app": POOL_JOB_NAME, "curve_cluster": spec.namespace},
        },
        "spec": {
            "template": {
                "metadata": {"labels": {"app": POOL_JOB_NAME, "curve_cluster": spec.namespace}},
                "spec": {
                    "containers": [{
                        "name": "pool",
                        "image": spec.image,
                        "imagePullPolicy": spec.image_pull_policy,
                        "command": ["/curvebs/tools/sbin/curvebs-tool"],
                        "args": [
                            f"-op={op}",
                            f"-cluster_map={POOL_CONFIG_MOUNT_DIR}/topology.json",
                        ],
                        "volumeMounts": [{"name": "topology", "mountPath": POOL_CONFIG_MOUNT_DIR}],
                    }],
                    "restartPolicy": "OnFailure",
                    "hostNetwork": True,
                    "dnsPolicy": "ClusterFirstWithHostNet",
                    "volumes": [{"name": "topology", "configMap": {"name": POOL_CONFIG_MAP_NAME}}],
                },
            },
        },
    }
    if owner:
        owner.set_controller_reference(job)
    return job


class PoolJobCreator:
    """
    Creates the physical or logical pool by running curvebs-tool as a job and
    blocking until it completes.
    """

    def __init__(
        self,
        store: TaskStore,
        spec: ClusterSpec,
        *,
        owner: Optional[OwnerInfo] = None,
        timeout_seconds: float = 600,
        poll_seconds: float = 5,
    ):
        self.store = store
        self.spec = spec
        self.owner = owner
        self.timeout_seconds = timeout_seconds
        self.poll_seconds = poll_seconds

    def _write_topology(self, configs: List[DeviceConfigRecord]) -> None:
        data = {"topology.json": json.dumps(build_topology(self.spec, configs), indent=2)}
        self.store.apply_config_map(self.spec.namespace, POOL_CONFIG_MAP_NAME, data, owner=self.owner)

    def create_pool(
        self,
        kind: str,
        node_ip_map: Dict[str, str],
        configs: List[DeviceConfigRecord],
    ) -> str:
        if kind not in (PHYSICAL_POOL, LOGICAL_POOL):
            raise ValueError(f"unknown pool kind {kind!r}")
        log.info("creating %s over %d nodes / %d chunkservers", kind, len(node_ip_map), len(configs))

        try:
            self._write_topology(configs)
            handle: JobHandle = run_replaceable_job(
                self.store, make_pool_job(self.spec, kind, self.owner), delete_if_found=True
            )
        except StoreError as e:
            raise ProvisionError(f"failed to submit {kind} job: {e}") from e

        chn = start_job_watcher(
            AggregateJobStatus(self.store, [handle]),
            name=handle.name,
            interval=self.poll_seconds,
            timeout=self.timeout_seconds,
        )
        if not chn.get():
            raise ProvisionError(f"{kind} job {handle.name} did not complete in {self.timeout_seconds}s")
        return handle.name
