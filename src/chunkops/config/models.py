# src/chunkops/config/models.py

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class DeviceSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str                        # device path, e.g. /dev/sdb
    percentage: int = Field(default=80, ge=1, le=100)  # share of capacity for the chunkfile pool

    @property
    def short_name(self) -> str:
        """'/dev/sdb/' -> 'sdb'"""
        name = self.name.strip().rstrip("/")
        return name.split("/")[-1]


class SelectedNodeSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    node: str
    devices: List[DeviceSpec] = Field(default_factory=list)


class StorageSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    use_selected_nodes: bool = False
    nodes: List[str] = Field(default_factory=list)
    devices: List[DeviceSpec] = Field(default_factory=list)
    selected_nodes: List[SelectedNodeSpec] = Field(default_factory=list)
    port: int = 8200                 # first chunkserver port on every host


class MdsSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    port: int = 6700
    dummy_port: int = 7700


class SnapShotCloneSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    enable: bool = False
    port: int = 5555
    dummy_port: int = 8081


class PoolSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    physical_pool: str = "pool1"
    logical_pool: str = "logicalPool1"
    zone_num: int = 3
    replicas_num: int = 3
    copyset_num: int = 100
    scatter_width: int = 0
    segment_size: int = 1024 * 1024 * 1024


class ClusterSpec(BaseModel):
    """
    Declarative target state for one provisioning run.
    Mirrors the spec of the cluster custom resource.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    namespace: str = "curvebs"
    uid: Optional[str] = None                 # uid of the custom resource, for owner references
    image: str = "opencurvedocker/curvebs:v1.2"
    image_pull_policy: str = "IfNotPresent"

    data_dir_host_path: str = "/curvebs/data"
    log_dir_host_path: str = "/curvebs/logs"
    conf_dir_host_path: str = "/curvebs/conf"

    storage: StorageSpec = StorageSpec()
    mds: MdsSpec = MdsSpec()
    snapshot_clone: SnapShotCloneSpec = SnapShotCloneSpec()
    pool: PoolSpec = PoolSpec()
