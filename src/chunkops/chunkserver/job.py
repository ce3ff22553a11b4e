# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/chunkserver/job.py
from __future__ import annotations

from typing import Dict, List, Optional, Tuple

from ..config.models import ClusterSpec, DeviceSpec
from ..k8s.owner import OwnerInfo
from .models import CONTAINER_DATA_DIR, CONTAINER_LOG_DIR

PREPARE_JOB_NAME = "prepare-chunkfile"
DEFAULT_CHUNKFILE_SIZE = 16 * 1024 * 1024  # 16MB

FORMAT_CONFIG_MAP_NAME = "format-chunkfile-conf"
FORMAT_SCRIPT_FILE_DATA_KEY = "format.sh"
FORMAT_SCRIPT_MOUNT_PATH = "/curvebs/tools/sbin/format.sh"

CONTAINER_CONF_DIR = "/curvebs/chunkserver/conf"


def job_name(node_name: str, device: DeviceSpec) -> str:
    return f"{PREPARE_JOB_NAME}-{node_name}-{device.short_name}"


def pod_labels(spec: ClusterSpec, node_name: str, device: DeviceSpec) -> Dict[str, str]:
    return {
        "app": PREPARE_JOB_NAME,
        "node": node_name,
        "device": device.short_name,
        "curve_cluster": spec.namespace,
    }


def _volumes(spec: ClusterSpec, node_name: str, device: DeviceSpec) -> Tuple[List[dict], List[dict]]:
    host_dir = f"chunkserver-{node_name}-{device.short_name}"
    volumes = [
        {"name": "device", "hostPath": {"path": device.name}},
        {"name": "data", "hostPath": {"path": f"{spec.data_dir_host_path}/{host_dir}", "type": "DirectoryOrCreate"}},
        {"name": "log", "hostPath": {"path": f"{spec.log_dir_host_path}/{host_dir}", "type": "DirectoryOrCreate"}},
        {"name": "conf", "hostPath": {"path": spec.conf_dir_host_path, "type": "DirectoryOrCreate"}},
        {
            "name": "format-script",
            "configMap": {
                "name": FORMAT_CONFIG_MAP_NAME,
                "items": [{"key": FORMAT_SCRIPT_FILE_DATA_KEY, "path": FORMAT_SCRIPT_FILE_DATA_KEY}],
                "defaultMode": 0o755,
            },
        },
    ]
    mounts = [
        {"name": "device", "mountPath": device.name},
        {"name": "data", "mountPath": CONTAINER_DATA_DIR, "mountPropagation": "Bidirectional"},
        {"name": "log", "mountPath": CONTAINER_LOG_DIR},
        {"name": "conf", "mountPath": CONTAINER_CONF_DIR},
        {"name": "format-script", "mountPath": FORMAT_SCRIPT_MOUNT_PATH, "subPath": FORMAT_SCRIPT_FILE_DATA_KEY},
    ]
    return volumes, mounts


def make_format_container(spec: ClusterSpec, device: DeviceSpec, mounts: List[dict]) -> dict:
    return {
        "name": "format",
        "image": spec.image,
        "imagePullPolicy": spec.image_pull_policy,
        "command": ["/bin/bash", FORMAT_SCRIPT_MOUNT_PATH],
        "args": [
            device.name,
            CONTAINER_DATA_DIR,
            str(device.percentage),
            str(DEFAULT_CHUNKFILE_SIZE),
            f"{CONTAINER_DATA_DIR}/chunkfilepool",
            f"{CONTAINER_DATA_DIR}/chunkfilepool.meta",
        ],
        "volumeMounts": mounts,
        "securityContext": {
            "privileged": True,
            "runAsUser": 0,
            "runAsNonRoot": False,
            "readOnlyRootFilesystem": False,
        },
    }


def make_job(
    spec: ClusterSpec,
    node_name: str,
    device: DeviceSpec,
    owner: Optional[OwnerInfo] = None,
) -> dict:
    """batch/v1 Job that formats `device` on `node_name` and fills its chunkfile pool."""
    volumes, mounts = _volumes(spec, node_name, device)
    labels = pod_labels(spec, node_name, device)

    job = {
        "apiVersion": "batch/v1",
        "kind": "Job",
        "metadata": {
            "name": job_name(node_name, device),
            "namespace": spec.namespace,
            "labels": dict(labels),
        },
        "spec": {
            "template": {
                "metadata": {
                    "name": f"{PREPARE_JOB_NAME}-{node_name}",
                    "labels": dict(labels),
                },
                "spec": {
                    "containers": [make_format_container(spec, device, mounts)],
                    "nodeName": node_name,
                    "restartPolicy": "OnFailure",
                    "hostNetwork": True,
                    "dnsPolicy": "ClusterFirstWithHostNet",
                    "volumes": volumes,
                    "securityContext": {"runAsUser": 0, "runAsNonRoot": False},
                },
            },
        },
    }

    if owner:
        owner.set_controller_reference(job)
    return job
