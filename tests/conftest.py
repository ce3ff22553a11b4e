from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from chunkops.config.models import ClusterSpec, DeviceSpec, StorageSpec
from chunkops.k8s.errors import AlreadyExistsError, NotFoundError, StoreError
from chunkops.k8s.interface import JobHandle, JobStatus, NodeInfo


class FakeStore:
    """
    In-memory TaskStore. Every call is recorded in .calls as (op, name).

    vanish_after[name] = k  -> after delete, the k-th get_job reports not found
    vanish_after[name] = None -> the job never goes away
    """

    def __init__(
        self,
        nodes: Optional[List[str]] = None,
        not_ready: tuple = (),
        auto_succeed: bool = False,
        fail_create: tuple = (),
    ):
        self.calls: List[tuple] = []
        self.jobs: Dict[tuple, JobHandle] = {}
        self.config_maps: Dict[tuple, Dict[str, str]] = {}
        self.deployments: List[dict] = []
        self.rollouts: List[tuple] = []
        self.nodes = list(nodes or [])
        self.not_ready = set(not_ready)
        self.auto_succeed = auto_succeed
        self.fail_create = set(fail_create)
        self.get_errors: Dict[str, Exception] = {}
        self.delete_errors: Dict[str, Exception] = {}
        self.vanish_after: Dict[str, Optional[int]] = {}
        self._pending: Dict[str, int] = {}

    # jobs
    def add_job(self, namespace: str, name: str, status: JobStatus) -> JobHandle:
        handle = JobHandle(name=name, namespace=namespace, status=status)
        self.jobs[(namespace, name)] = handle
        return handle

    def get_job(self, namespace, name):
        self.calls.append(("get_job", name))
        if name in self.get_errors:
            raise self.get_errors[name]
        if name in self._pending:
            self._pending[name] += 1
            limit = self.vanish_after.get(name)
            if limit is not None and self._pending[name] >= limit:
                del self._pending[name]
                self.jobs.pop((namespace, name), None)
                raise NotFoundError(name)
        if (namespace, name) not in self.jobs:
            raise NotFoundError(name)
        return self.jobs[(namespace, name)]

    def create_job(self, manifest):
        meta = manifest["metadata"]
        name, ns = meta["name"], meta["namespace"]
        self.calls.append(("create_job", name))
        if name in self.fail_create:
            raise StoreError(f"quota exceeded for {name}")
        if (ns, name) in self.jobs:
            raise AlreadyExistsError(name)
        status = JobStatus(succeeded=1) if self.auto_succeed else JobStatus(active=1)
        handle = JobHandle(name=name, namespace=ns, status=status, manifest=manifest)
        self.jobs[(ns, name)] = handle
        return handle

    def delete_job(self, namespace, name, *, propagation="Foreground", grace_period_seconds=0):
        self.calls.append(("delete_job", name))
        assert propagation == "Foreground"
        assert grace_period_seconds == 0
        if name in self.delete_errors:
            raise self.delete_errors[name]
        if (namespace, name) not in self.jobs:
            raise NotFoundError(name)
        if name in self.vanish_after and self.vanish_after[name] != 0:
            self._pending[name] = 0
        else:
            del self.jobs[(namespace, name)]

    # config maps
    def create_config_map(self, namespace, name, data, *, owner=None):
        self.calls.append(("create_config_map", name))
        if (namespace, name) in self.config_maps:
            raise AlreadyExistsError(name)
        self.config_maps[(namespace, name)] = dict(data)

    def apply_config_map(self, namespace, name, data, *, owner=None):
        self.calls.append(("apply_config_map", name))
        self.config_maps[(namespace, name)] = dict(data)

    def get_config_map(self, namespace, name):
        self.calls.append(("get_config_map", name))
        if (namespace, name) not in self.config_maps:
            raise NotFoundError(name)
        return dict(self.config_maps[(namespace, name)])

    # nodes
    def get_node_hostnames(self):
        self.calls.append(("get_node_hostnames", None))
        return {n: n for n in self.nodes}

    def list_valid_nodes(self, hostnames):
        self.calls.append(("list_valid_nodes", tuple(hostnames)))
        return [NodeInfo(name=h, hostname=h) for h in hostnames if h in self.nodes and h not in self.not_ready]

    def resolve_node_address(self, node_name):
        self.calls.append(("resolve_node_address", node_name))
        if node_name not in self.nodes:
            raise NotFoundError(f"node {node_name} not found")
        return f"10.0.0.{self.nodes.index(node_name) + 1}"

    # deployments
    def apply_deployment(self, manifest):
        self.calls.append(("apply_deployment", manifest["metadata"]["name"]))
        self.deployments.append(manifest)

    def wait_for_rollout(self, namespace, selector, timeout_seconds=300):
        self.calls.append(("wait_for_rollout", selector))
        self.rollouts.append((namespace, selector, timeout_seconds))

    def ops(self, op: str) -> List:
        return [name for o, name in self.calls if o == op]


def seed_endpoints(store: FakeStore, namespace: str = "curvebs") -> None:
    store.config_maps[(namespace, "etcd-endpoints-override")] = {
        "clusterEtcdAddr": "10.0.0.1:23790,10.0.0.2:23790,10.0.0.3:23790"
    }
    store.config_maps[(namespace, "mds-endpoints-override")] = {
        "clusterMdsAddr": "10.0.0.1:6700,10.0.0.2:6700,10.0.0.3:6700"
    }


@pytest.fixture
def make_store():
    def _make(nodes=("node1", "node2"), **kw) -> FakeStore:
        store = FakeStore(nodes=list(nodes), **kw)
        seed_endpoints(store)
        return store
    return _make


@pytest.fixture
def make_spec():
    def _make(nodes=("node1", "node2"), devices=("/dev/sdb", "/dev/sdc"), **kw) -> ClusterSpec:
        storage = StorageSpec(
            nodes=list(nodes),
            devices=[DeviceSpec(name=d, percentage=90) for d in devices],
            port=8200,
        )
        return ClusterSpec(name="my-cluster", namespace="curvebs", storage=storage, **kw)
    return _make


@pytest.fixture
def node_ips():
    return {"node1": "10.0.0.1", "node2": "10.0.0.2"}
