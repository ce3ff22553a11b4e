# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/chunkserver/launcher.py
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Protocol

from ..config.models import ClusterSpec
from ..errors import ProvisionError
from ..k8s.errors import AlreadyExistsError, StoreError
from ..k8s.owner import OwnerInfo
from . import script
from .models import APP_NAME, DeviceConfigRecord

log = logging.getLogger("chunkops")

# start_chunkserver.sh
START_CONFIG_MAP_NAME = "start-chunkserver-conf"
START_SCRIPT_FILE_DATA_KEY = "start_chunkserver.sh"
START_SCRIPT_MOUNT_PATH = "/curvebs/tools/sbin/start_chunkserver.sh"

CHUNKSERVER_CONF_KEY = "chunkserver.conf"
CHUNKSERVER_CONF_MOUNT_DIR = "/curvebs/chunkserver/conf"


class ServiceLauncher(Protocol):
    def start_services(self, configs: List[DeviceConfigRecord]) -> None: ...


class DeploymentStore(Protocol):
    def create_config_map(self, namespace: str, name: str, data: Dict[str, str], *,
                          owner: Optional[OwnerInfo] = None) -> None: ...

    def apply_config_map(self, namespace: str, name: str, data: Dict[str, str], *,
                         owner: Optional[OwnerInfo] = None) -> None: ...

    def apply_deployment(self, manifest: dict) -> None: ...

    def wait_for_rollout(self, namespace: str, selector: str, timeout_seconds: int = 300) -> None: ...


def render_chunkserver_conf(cfg: DeviceConfigRecord) -> str:
    data_dir = cfg.data_path_map.container_data_dir
    lines = [
        f"global.ip={cfg.node_ip}",
        f"global.port={cfg.port}",
        f"global.subnet={cfg.node_ip}/32",
        f"mds.listen.addr={cfg.cluster_mds_addr}",
        f"mds.dummy.ports={cfg.cluster_mds_dummy_port}",
        f"etcd.addr={cfg.cluster_etcd_addr}",
        f"chunkserver.common.logDir={cfg.data_path_map.container_log_dir}",
        f"chunkserver.stor_uri=local://{data_dir}",
        f"chunkserver.meta_uri=local://{data_dir}/chunkserver.dat",
        f"copyset.chunk_data_uri=local://{data_dir}/copysets",
        f"copyset.raft_log_uri=curve://{data_dir}/copysets",
        f"copyset.raft_meta_uri=local://{data_dir}/copysets",
        f"copyset.raft_snapshot_uri=curve://{data_dir}/copysets",
        f"copyset.recycler_uri=local://{data_dir}/recycler",
        f"chunkfilepool.chunk_file_pool_dir={data_dir}",
        f"chunkfilepool.meta_path={data_dir}/chunkfilepool.meta",
    ]
    if cfg.cluster_snapshotclone_addr:
        lines.append(f"s3.snapshotclone.addr={cfg.cluster_snapshotclone_addr}")
        lines.append(f"s3.snapshotclone.dummy.ports={cfg.cluster_snapshotclone_dummy_port}")
    return "\n".join(lines) + "\n"


def make_deployment(spec: ClusterSpec, cfg: DeviceConfigRecord, owner: Optional[OwnerInfo] = None) -> dict:
    labels = {
        "app": APP_NAME,
        "chunkserver": cfg.resource_name,
        "node": cfg.node_name,
        "curve_cluster": spec.namespace,
    }
    deploy = {
        "apiVersion": "apps/v1",
        "kind": "Deployment",
        "metadata": {"name": cfg.resource_name, "namespace": spec.namespace, "labels": dict(labels)},
        "spec": {
            "replicas": 1,
            "selector": {"matchLabels": {"chunkserver": cfg.resource_name}},
            "strategy": {"type": "Recreate"},
            "template": {
                "metadata": {"labels": dict(labels)},
                "spec": {
                    "nodeName": cfg.node_name,
                    "hostNetwork": True,
                    "dnsPolicy": "ClusterFirstWithHostNet",
                    "containers": [{
                        "name": "chunkserver",
                        "image": spec.image,
                        "imagePullPolicy": spec.image_pull_policy,
                        "command": ["/bin/bash", START_SCRIPT_MOUNT_PATH],
                        "args": [
                            cfg.data_path_map.host_device,
                            cfg.data_path_map.container_data_dir,
                            f"{CHUNKSERVER_CONF_MOUNT_DIR}/{CHUNKSERVER_CONF_KEY}",
                        ],
                        "ports": [{"name": "listen-port", "containerPort": cfg.port}],
                        "securityContext": {"privileged": True},
                        "volumeMounts": [
                            {"name": "device", "mountPath": cfg.data_path_map.host_device},
                            {"name": "log", "mountPath": cfg.data_path_map.container_log_dir},
                            {"name": "conf", "mountPath": CHUNKSERVER_CONF_MOUNT_DIR},
                            {"name": "start-script", "mountPath": START_SCRIPT_MOUNT_PATH,
                             "subPath": START_SCRIPT_FILE_DATA_KEY},
                        ],
                    }],
                    "volumes": [
                        {"name": "device", "hostPath": {"path": cfg.data_path_map.host_device}},
                        {"name": "log", "hostPath": {"path": cfg.data_path_map.host_log_dir,
                                                     "type": "DirectoryOrCreate"}},
                        {"name": "conf", "configMap": {"name": cfg.config_map_name}},
                        {"name": "start-script", "configMap": {"name": START_CONFIG_MAP_NAME,
                                                               "defaultMode": 0o755}},
                    ],
                },
            },
        },
    }
    if owner:
        owner.set_controller_reference(deploy)
    return deploy


class ChunkserverLauncher:
    """One Deployment per device; returns once every chunkserver rollout is available."""

    def __init__(
        self,
        store: DeploymentStore,
        spec: ClusterSpec,
        *,
        owner: Optional[OwnerInfo] = None,
        rollout_timeout_seconds: int = 900,
    ):
        self.store = store
        self.spec = spec
        self.owner = owner
        self.rollout_timeout_seconds = rollout_timeout_seconds

    def _static_config_map(self, name: str, data: Dict[str, str]) -> None:
        try:
            self.store.create_config_map(self.spec.namespace, name, data, owner=self.owner)
        except AlreadyExistsError:
            log.debug("configmap %s already exists", name)

    def start_services(self, configs: List[DeviceConfigRecord]) -> None:
        ns = self.spec.namespace
        try:
            self._static_config_map(START_CONFIG_MAP_NAME, {START_SCRIPT_FILE_DATA_KEY: script.START})
            for cfg in configs:
                # rendered per run: ports can move between runs
                self.store.apply_config_map(
                    ns, cfg.config_map_name, {CHUNKSERVER_CONF_KEY: render_chunkserver_conf(cfg)}, owner=self.owner
                )
                self.store.apply_deployment(make_deployment(self.spec, cfg, self.owner))
                log.info("chunkserver %s on %s (%s:%d) submitted",
                         cfg.resource_name, cfg.node_name, cfg.node_ip, cfg.port)
        except StoreError as e:
            raise ProvisionError(f"failed to start chunkservers: {e}") from e

        if not configs:
            return
        try:
            self.store.wait_for_rollout(ns, f"app={APP_NAME}", self.rollout_timeout_seconds)
        except TimeoutError as e:
            raise ProvisionError(f"chunkservers not ready: {e}") from e
        log.info("all %d chunkservers are available", len(configs))
