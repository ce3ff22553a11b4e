# src/chunkops/chunkserver/models.py

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from ..config.models import DeviceSpec
from ..k8s.interface import JobHandle

APP_NAME = "curve-chunkserver"
CONFIG_MAP_NAME_PREFIX = "curve-chunkserver-conf"

# container paths of data and log
PREFIX = "/curvebs/chunkserver"
CONTAINER_DATA_DIR = "/curvebs/chunkserver/data"
CONTAINER_LOG_DIR = "/curvebs/chunkserver/logs"


@dataclass
class TaskRecord:
    """A format job that was submitted for one device of one node."""
    job: JobHandle
    device: DeviceSpec
    node_name: str


@dataclass
class DataPathMap:
    host_device: str
    host_log_dir: str
    container_data_dir: str = CONTAINER_DATA_DIR
    container_log_dir: str = CONTAINER_LOG_DIR


@dataclass
class DeviceConfigRecord:
    """Runtime configuration of the chunkserver that will serve one device."""
    prefix: str
    port: int
    cluster_mds_addr: str
    cluster_mds_dummy_port: str
    cluster_etcd_addr: str
    cluster_snapshotclone_addr: str
    cluster_snapshotclone_dummy_port: str

    resource_name: str
    config_map_name: str
    data_path_map: DataPathMap
    node_name: str
    node_ip: str
    device_name: str
    host_sequence: int
    replicas_sequence: int
    replicas: int


@dataclass
class ProvisionPlan:
    """Jobs and chunkserver configs produced by one planner run, kept 1:1."""
    tasks: List[TaskRecord] = field(default_factory=list)
    configs: List[DeviceConfigRecord] = field(default_factory=list)

    def add(self, task: TaskRecord, cfg: DeviceConfigRecord) -> None:
        self.tasks.append(task)
        self.configs.append(cfg)

    def jobs(self) -> List[JobHandle]:
        return [t.job for t in self.tasks]

    def __len__(self) -> int:
        return len(self.tasks)
