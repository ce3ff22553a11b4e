import logging

from chunkops.observers.dispatcher import EventBus
from chunkops.observers.events import PlanFailed, StageSucceeded, new_ctx
from chunkops.observers.interface import Observer
from chunkops.observers.logger import LoggerObserver


class Capture(Observer):
    def __init__(self): self.events = []
    def notify(self, event): self.events.append(event)


class Exploding:
    def notify(self, event):
        raise RuntimeError("observer bug")


def test_bus_keeps_delivering_after_observer_failure():
    cap = Capture()
    bus = EventBus([Exploding(), cap])
    ev = StageSucceeded(stage="Provisioning", **new_ctx("c1", "curvebs"))
    bus.emit(ev)
    assert cap.events == [ev]


def test_new_ctx_reuses_run_id():
    ctx = new_ctx("c1", "curvebs", run_id="run-1")
    assert ctx["run_id"] == "run-1"
    assert ctx["ts"].endswith("Z")


def test_logger_observer_levels(caplog):
    logger = logging.getLogger("chunkops.test")
    obs = LoggerObserver(logger)
    ctx = new_ctx("c1", "curvebs", run_id="r")
    with caplog.at_level(logging.INFO, logger="chunkops.test"):
        obs.notify(StageSucceeded(stage="AwaitFormat", **ctx))
        obs.notify(PlanFailed(error="no etcd", **ctx))
    levels = [r.levelno for r in caplog.records]
    assert levels == [logging.INFO, logging.ERROR]
    assert "stage=AwaitFormat" in caplog.records[0].getMessage()
