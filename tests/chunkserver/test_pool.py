import json

import pytest

from chunkops.chunkserver.planner import start_provisioning_over_nodes
from chunkops.chunkserver.pool import (
    LOGICAL_POOL,
    PHYSICAL_POOL,
    POOL_CONFIG_MAP_NAME,
    PoolJobCreator,
    build_topology,
)
from chunkops.errors import ProvisionError


def _configs(store, spec, node_ips):
    return start_provisioning_over_nodes(store, spec, node_ips, sleep=lambda _: None).configs


def test_topology_has_one_server_per_chunkserver(make_store, make_spec, node_ips):
    spec = make_spec()
    topo = build_topology(spec, _configs(make_store(), spec, node_ips))

    assert [s["name"] for s in topo["servers"]] == ["node1_0", "node1_1", "node2_0", "node2_1"]
    assert [s["zone"] for s in topo["servers"]] == ["zone1", "zone1", "zone2", "zone2"]
    assert topo["servers"][1]["internalport"] == 8201
    (lp,) = topo["logicalpools"]
    assert lp["physicalpool"] == "pool1"
    assert lp["replicasnum"] == 3


def test_create_pool_runs_job_and_waits(make_store, make_spec, node_ips):
    spec = make_spec()
    store = make_store(auto_succeed=True)
    configs = _configs(store, spec, node_ips)

    creator = PoolJobCreator(store, spec, timeout_seconds=5, poll_seconds=0.01)
    assert creator.create_pool(PHYSICAL_POOL, node_ips, configs) == "provision-pool-physical-pool"
    assert creator.create_pool(LOGICAL_POOL, node_ips, configs) == "provision-pool-logical-pool"

    topo = json.loads(store.config_maps[("curvebs", POOL_CONFIG_MAP_NAME)]["topology.json"])
    assert len(topo["servers"]) == 4
    job = store.jobs[("curvebs", "provision-pool-logical-pool")].manifest
    args = job["spec"]["template"]["spec"]["containers"][0]["args"]
    assert args[0] == "-op=create_logicalpool"


def test_create_pool_times_out(make_store, make_spec, node_ips):
    spec = make_spec()
    store = make_store()   # jobs stay active
    creator = PoolJobCreator(store, spec, timeout_seconds=0.05, poll_seconds=0.01)
    with pytest.raises(ProvisionError, match="did not complete"):
        creator.create_pool(PHYSICAL_POOL, node_ips, [])


def test_unknown_pool_kind(make_store, make_spec, node_ips):
    creator = PoolJobCreator(make_store(), make_spec())
    with pytest.raises(ValueError):
        creator.create_pool("virtual_pool", node_ips, [])


def test_topology_is_rewritten_when_the_cluster_grows(make_store, make_spec, node_ips):
    store = make_store(auto_succeed=True)

    small = make_spec(nodes=("node1",))
    configs = _configs(store, small, node_ips)
    PoolJobCreator(store, small, timeout_seconds=5, poll_seconds=0.01).create_pool(PHYSICAL_POOL, node_ips, configs)
    topo = json.loads(store.config_maps[("curvebs", POOL_CONFIG_MAP_NAME)]["topology.json"])
    assert len(topo["servers"]) == 2

    full = make_spec()
    configs = _configs(store, full, node_ips)
    PoolJobCreator(store, full, timeout_seconds=5, poll_seconds=0.01).create_pool(PHYSICAL_POOL, node_ips, configs)
    topo = json.loads(store.config_maps[("curvebs", POOL_CONFIG_MAP_NAME)]["topology.json"])
    assert len(topo["servers"]) == 4
    assert store.ops("apply_config_map").count(POOL_CONFIG_MAP_NAME) == 2
