# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/chunkserver/planner.py

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from ..config.models import ClusterSpec, DeviceSpec
from ..errors import ConfigurationError, ProvisionError, SubmissionError
from ..k8s.errors import AlreadyExistsError, StoreError
from ..k8s.interface import JobHandle, NodeInfo, TaskStore
from ..k8s.jobs import run_replaceable_job
from ..k8s.owner import OwnerInfo
from ..observers.dispatcher import EventBus
from ..observers.events import JobSubmitFailed, JobSubmitted, PlanComputed, PlanFailed, new_ctx
from . import script
from .job import FORMAT_CONFIG_MAP_NAME, FORMAT_SCRIPT_FILE_DATA_KEY, job_name, make_job
from .models import (
    APP_NAME,
    CONFIG_MAP_NAME_PREFIX,
    PREFIX,
    DataPathMap,
    DeviceConfigRecord,
    ProvisionPlan,
    TaskRecord,
)

log = logging.getLogger("chunkops")

ETCD_OVERRIDE_CONFIG_MAP_NAME = "etcd-endpoints-override"
ETCD_OVERRIDE_DATA_KEY = "clusterEtcdAddr"
MDS_OVERRIDE_CONFIG_MAP_NAME = "mds-endpoints-override"
MDS_OVERRIDE_DATA_KEY = "clusterMdsAddr"


@dataclass(frozen=True)
class UpstreamAddrs:
    etcd_addr: str
    mds_addr: str
    mds_dummy_port: str
    snapshotclone_addr: str = ""
    snapshotclone_dummy_port: str = ""


def validate_storage(spec: ClusterSpec) -> None:
    storage = spec.storage
    if not storage.use_selected_nodes and (not storage.nodes or not storage.devices):
        raise ConfigurationError("useSelectedNodes is set to false but no node or device specified")
    if storage.use_selected_nodes and not storage.selected_nodes:
        raise ConfigurationError("useSelectedNodes is set to true but selectedNodes not specified")


def declared_nodes(spec: ClusterSpec) -> List[str]:
    storage = spec.storage
    if storage.use_selected_nodes:
        return [s.node for s in storage.selected_nodes]
    return list(storage.nodes)


def resolve_node_ips(store: TaskStore, spec: ClusterSpec) -> Dict[str, str]:
    """
    Address of every declared node. Nodes the API server cannot resolve are
    left out with a warning instead of failing the run.
    """
    node_ip_map: Dict[str, str] = {}
    for name in declared_nodes(spec):
        try:
            node_ip_map[name] = store.resolve_node_address(name)
        except StoreError as e:
            log.warning("skipping node %s: %s", name, e)
    return node_ip_map


def _triple(port: int) -> str:
    return ",".join([str(port)] * 3)


def resolve_upstream(store: TaskStore, spec: ClusterSpec, node_ip_map: Dict[str, str]) -> UpstreamAddrs:
    """Read etcd/MDS endpoints from their override config maps and build the snapshotclone address."""
    ns = spec.namespace
    try:
        etcd_addr = store.get_config_map(ns, ETCD_OVERRIDE_CONFIG_MAP_NAME).get(ETCD_OVERRIDE_DATA_KEY, "")
    except StoreError as e:
        raise ProvisionError(f"failed to get etcd override endpoints configmap: {e}") from e
    try:
        mds_addr = store.get_config_map(ns, MDS_OVERRIDE_CONFIG_MAP_NAME).get(MDS_OVERRIDE_DATA_KEY, "")
    except StoreError as e:
        raise ProvisionError(f"failed to get mds override endpoints configmap: {e}") from e

    snap_addr = ""
    snap_dummy = ""
    if spec.snapshot_clone.enable:
        for ip in node_ip_map.values():
            snap_addr += f"{ip}:{spec.snapshot_clone.port},"
        snap_addr = snap_addr.rstrip(",")
        snap_dummy = _triple(spec.snapshot_clone.dummy_port)

    return UpstreamAddrs(
        etcd_addr=etcd_addr,
        mds_addr=mds_addr,
        mds_dummy_port=_triple(spec.mds.dummy_port),
        snapshotclone_addr=snap_addr,
        snapshotclone_dummy_port=snap_dummy,
    )


def create_format_config_map(store: TaskStore, spec: ClusterSpec, owner: Optional[OwnerInfo] = None) -> None:
    """ConfigMap holding format.sh, shared by every prepare job."""
    try:
        store.create_config_map(
            spec.namespace,
            FORMAT_CONFIG_MAP_NAME,
            {FORMAT_SCRIPT_FILE_DATA_KEY: script.FORMAT},
            owner=owner,
        )
    except AlreadyExistsError:
        log.debug("configmap %s already exists", FORMAT_CONFIG_MAP_NAME)
    except StoreError as e:
        raise ProvisionError(f"failed to create format configmap in {spec.namespace}: {e}") from e


def _storage_targets(store: TaskStore, spec: ClusterSpec) -> Tuple[List[NodeInfo], Dict[str, List[DeviceSpec]], int]:
    storage = spec.storage
    if storage.use_selected_nodes:
        declared = {s.node: list(s.devices or storage.devices) for s in storage.selected_nodes}
    else:
        declared = {n: list(storage.devices) for n in storage.nodes}

    hostname_map = store.get_node_hostnames()
    hostnames = [hostname_map.get(n, n) for n in declared]
    valid = store.list_valid_nodes(hostnames)

    devices: Dict[str, List[DeviceSpec]] = {}
    by_hostname = {hostname_map.get(n, n): n for n in declared}
    for node in valid:
        declared_name = node.name if node.name in declared else by_hostname.get(node.hostname, node.name)
        devices[node.name] = declared.get(declared_name, [])
    return valid, devices, len(declared)


def _submit(store: TaskStore, spec: ClusterSpec, node_name: str, device: DeviceSpec,
            owner: Optional[OwnerInfo], sleep: Callable[[float], None]) -> JobHandle:
    try:
        return run_replaceable_job(store, make_job(spec, node_name, device, owner), sleep=sleep)
    except Exception as e:
        raise SubmissionError(f"failed to create job for device {device.name} on {node_name}: {e}") from e


def start_provisioning_over_nodes(
    store: TaskStore,
    spec: ClusterSpec,
    node_ip_map: Dict[str, str],
    *,
    owner: Optional[OwnerInfo] = None,
    bus: Optional[EventBus] = None,
    run_ctx: Optional[dict] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ProvisionPlan:
    """
    Submit one format job per (valid node, device) and build the matching
    chunkserver configs. A device whose job cannot be submitted is logged and
    left out of both lists; the remaining devices are still provisioned.
    """
    ctx = run_ctx or new_ctx(cluster=spec.name, namespace=spec.namespace)
    plan = ProvisionPlan()
    try:
        validate_storage(spec)

        valid_nodes, node_devices, declared = _storage_targets(store, spec)
        if not valid_nodes:
            log.warning("no valid nodes available to run chunkservers on nodes in namespace %r", spec.namespace)
            if bus:
                bus.emit(PlanComputed(jobs=[], **ctx))
            return plan

        log.info("%d of the %d storage nodes are valid", len(valid_nodes), declared)

        create_format_config_map(store, spec, owner)
        upstream = resolve_upstream(store, spec, node_ip_map)

        host_sequence = 0
        for node in valid_nodes:
            node_ip = node_ip_map.get(node.name, "")
            devices = node_devices.get(node.name, [])
            port = spec.storage.port
            replicas_sequence = 0

            for device in devices:
                name = device.short_name
                log.info("creating job for device %s on %s", device.name, node.name)
                try:
                    handle = _submit(store, spec, node.name, device, owner, sleep)
                except SubmissionError as e:
                    log.error("%s", e)
                    if bus:
                        bus.emit(JobSubmitFailed(name=job_name(node.name, device), node=node.name,
                                                 device=device.name, error=str(e), **ctx))
                    continue

                cfg = DeviceConfigRecord(
                    prefix=PREFIX,
                    port=port,
                    cluster_mds_addr=upstream.mds_addr,
                    cluster_mds_dummy_port=upstream.mds_dummy_port,
                    cluster_etcd_addr=upstream.etcd_addr,
                    cluster_snapshotclone_addr=upstream.snapshotclone_addr,
                    cluster_snapshotclone_dummy_port=upstream.snapshotclone_dummy_port,
                    resource_name=f"{APP_NAME}-{node.name}-{name}",
                    config_map_name=f"{CONFIG_MAP_NAME_PREFIX}-{node.name}-{name}",
                    data_path_map=DataPathMap(
                        host_device=device.name,
                        host_log_dir=f"{spec.log_dir_host_path}/chunkserver-{node.name}-{name}",
                    ),
                    node_name=node.name,
                    node_ip=node_ip,
                    device_name=device.name,
                    host_sequence=host_sequence,
                    replicas_sequence=replicas_sequence,
                    replicas=len(devices),
                )
                plan.add(TaskRecord(job=handle, device=device, node_name=node.name), cfg)
                if bus:
                    bus.emit(JobSubmitted(name=handle.name, node=node.name, device=device.name, **ctx))
                port += 1
                replicas_sequence += 1
            host_sequence += 1

        if bus:
            bus.emit(PlanComputed(jobs=[t.job.name for t in plan.tasks], **ctx))
        return plan

    except Exception as e:
        if bus:
            bus.emit(PlanFailed(error=str(e), **ctx))
        raise
