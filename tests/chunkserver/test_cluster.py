from __future__ import annotations

from typing import List

import pytest

from chunkops.chunkserver.cluster import (
    AWAIT_FORMAT,
    CREATE_LOGICAL_POOL,
    CREATE_PHYSICAL_POOL,
    FAILED,
    READY,
    START_SERVICES,
    ChunkserverCluster,
)
from chunkops.errors import BarrierTimeoutError, ConfigurationError, StageError
from chunkops.observers.dispatcher import EventBus
from chunkops.observers.events import (
    FormatSucceeded,
    FormatTimedOut,
    ProvisionSummary,
    StageFailed,
    StageSucceeded,
)


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


class Recorder:
    """Shared call log so the stage order across collaborators can be asserted."""
    def __init__(self): self.calls: List[tuple] = []


class FakePoolCreator:
    def __init__(self, rec: Recorder, fail_on: str = None):
        self.rec = rec
        self.fail_on = fail_on

    def create_pool(self, kind, node_ip_map, configs):
        self.rec.calls.append(("create_pool", kind, len(configs)))
        if kind == self.fail_on:
            raise RuntimeError(f"{kind} tool exited 1")
        return f"pool-{kind}"


class FakeLauncher:
    def __init__(self, rec: Recorder, fail: bool = False):
        self.rec = rec
        self.fail = fail

    def start_services(self, configs):
        self.rec.calls.append(("start_services", len(configs)))
        if self.fail:
            raise RuntimeError("chunkserver crashloop")


class FakeConditions:
    def __init__(self): self.updates = []

    def update_condition(self, namespace, name, condition_type, status, reason, message):
        self.updates.append((condition_type, status, reason))


def _cluster(store, spec, rec, *, pool_fail=None, launch_fail=False, conditions=None, cap=None,
             timeout=5.0):
    return ChunkserverCluster(
        store,
        spec,
        pool_creator=FakePoolCreator(rec, fail_on=pool_fail),
        launcher=FakeLauncher(rec, fail=launch_fail),
        conditions=conditions,
        bus=EventBus([cap] if cap else []),
        format_timeout_seconds=timeout,
        format_poll_seconds=0.01,
    )


def test_happy_path_runs_stages_in_order(make_store, make_spec, node_ips):
    rec, cap, conds = Recorder(), Capture(), FakeConditions()
    store = make_store(auto_succeed=True)
    cluster = _cluster(store, make_spec(), rec, conditions=conds, cap=cap)

    plan = cluster.start(node_ips)

    assert len(plan.configs) == 4
    assert rec.calls == [
        ("create_pool", "physical_pool", 4),
        ("start_services", 4),
        ("create_pool", "logical_pool", 4),
    ]
    assert cluster.state == READY
    assert conds.updates == [
        ("FormatedReady", "True", "FormatingChunkfilePool"),
        ("FormatedReady", "True", "FormatChunkfilePool"),
        ("ChunkServerReady", "True", "ChunkServerClusterCreated"),
    ]
    stages = [e.stage for e in cap.events if isinstance(e, StageSucceeded)]
    assert stages == ["ValidateSpec", "Provisioning", "AwaitFormat",
                      "CreatePhysicalPool", "StartServices", "CreateLogicalPool"]
    summary = cap.events[-1]
    assert isinstance(summary, ProvisionSummary)
    assert summary.status == "OK"
    assert summary.chunkservers == 4


def test_zero_valid_nodes_passes_the_barrier_immediately(make_store, make_spec, node_ips):
    rec, cap = Recorder(), Capture()
    store = make_store(not_ready=("node1", "node2"))
    plan = _cluster(store, make_spec(), rec, cap=cap).start(node_ips)

    assert len(plan) == 0
    assert any(isinstance(e, FormatSucceeded) and e.jobs == 0 for e in cap.events)
    assert rec.calls[0] == ("create_pool", "physical_pool", 0)


def test_barrier_timeout_aborts_before_pool_creation(make_store, make_spec, node_ips):
    rec, cap, conds = Recorder(), Capture(), FakeConditions()
    store = make_store()   # format jobs never finish
    cluster = _cluster(store, make_spec(), rec, conditions=conds, cap=cap, timeout=0.05)

    with pytest.raises(BarrierTimeoutError):
        cluster.start(node_ips)

    assert rec.calls == []
    assert cluster.state == FAILED
    assert cluster.failed_stage == AWAIT_FORMAT
    assert any(isinstance(e, FormatTimedOut) for e in cap.events)
    # only the "in progress" condition was reported
    assert conds.updates == [("FormatedReady", "True", "FormatingChunkfilePool")]
    # submitted jobs are left in place
    assert len(store.ops("delete_job")) == 0


def test_physical_pool_failure_stops_pipeline(make_store, make_spec, node_ips):
    rec, cap = Recorder(), Capture()
    cluster = _cluster(make_store(auto_succeed=True), make_spec(), rec, pool_fail="physical_pool", cap=cap)

    with pytest.raises(StageError) as ei:
        cluster.start(node_ips)

    assert ei.value.stage == CREATE_PHYSICAL_POOL
    assert isinstance(ei.value.__cause__, RuntimeError)
    assert rec.calls == [("create_pool", "physical_pool", 4)]
    failed = [e for e in cap.events if isinstance(e, StageFailed)]
    assert [e.stage for e in failed] == [CREATE_PHYSICAL_POOL]
    assert cap.events[-1].status == "FAILED"


def test_launch_failure_skips_logical_pool(make_store, make_spec, node_ips):
    rec = Recorder()
    cluster = _cluster(make_store(auto_succeed=True), make_spec(), rec, launch_fail=True)

    with pytest.raises(StageError) as ei:
        cluster.start(node_ips)

    assert ei.value.stage == START_SERVICES
    assert ("create_pool", "logical_pool", 4) not in rec.calls


def test_logical_pool_failure_is_a_stage_error(make_store, make_spec, node_ips):
    rec = Recorder()
    cluster = _cluster(make_store(auto_succeed=True), make_spec(), rec, pool_fail="logical_pool")
    with pytest.raises(StageError) as ei:
        cluster.start(node_ips)
    assert ei.value.stage == CREATE_LOGICAL_POOL


def test_invalid_spec_fails_before_any_store_call(make_store, make_spec, node_ips):
    rec = Recorder()
    store = make_store()
    cluster = _cluster(store, make_spec(devices=()), rec)

    with pytest.raises(ConfigurationError):
        cluster.start(node_ips)

    assert store.calls == []
    assert rec.calls == []


def test_condition_sink_errors_do_not_break_the_run(make_store, make_spec, node_ips):
    class BrokenConditions:
        def update_condition(self, *a, **kw):
            raise RuntimeError("apiserver down")

    rec = Recorder()
    cluster = _cluster(make_store(auto_succeed=True), make_spec(), rec, conditions=BrokenConditions())
    cluster.start(node_ips)
    assert cluster.state == READY


def test_empty_plan_does_not_start_a_watcher(make_store, make_spec, node_ips, monkeypatch):
    def no_watcher(*a, **kw):
        raise AssertionError("watcher started for an empty plan")

    monkeypatch.setattr("chunkops.chunkserver.cluster.start_job_watcher", no_watcher)
    rec, cap = Recorder(), Capture()
    cluster = ChunkserverCluster(
        make_store(not_ready=("node1", "node2")),
        make_spec(),
        pool_creator=FakePoolCreator(rec),
        launcher=FakeLauncher(rec),
        bus=EventBus([cap]),
        format_timeout_seconds=3600,
        format_poll_seconds=3600,
    )
    cluster.start(node_ips)
    assert cluster.state == READY
    assert [e.jobs for e in cap.events if isinstance(e, FormatSucceeded)] == [0]
