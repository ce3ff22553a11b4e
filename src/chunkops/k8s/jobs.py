# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/k8s/jobs.py

from __future__ import annotations

import logging
import queue
import threading
import time
from typing import Callable, Sequence

from ..errors import JobDeletionError
from .errors import NotFoundError, StoreError
from .interface import JobHandle, JobStatus, TaskStore

log = logging.getLogger("chunkops")

# A pod can easily take 60s to terminate, so wait up to 90s for the job to go away.
DELETE_RETRIES = 30
DELETE_INTERVAL_SECONDS = 3.0


def run_replaceable_job(
    store: TaskStore,
    job: dict,
    delete_if_found: bool = False,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> JobHandle:
    """
    Run a job so that a later call with the same job name replaces it.

    A job that is still active is left alone unless delete_if_found is set;
    a finished or failed one is deleted (waiting for the delete) and recreated.
    """
    meta = job["metadata"]
    namespace, name = meta["namespace"], meta["name"]

    try:
        existing = store.get_job(namespace, name)
    except NotFoundError:
        existing = None
    except StoreError as e:
        log.warning("failed to detect job %s. %s", name, e)
        existing = None

    if existing is not None:
        if existing.status.active > 0 and not delete_if_found:
            log.info("Found previous job %s. Status=%s", name, existing.status)
            return existing

        log.info("Removing previous job %s to start a new one", name)
        try:
            delete_batch_job(store, namespace, name, wait=True, sleep=sleep)
        except JobDeletionError as e:
            raise JobDeletionError(f"failed to remove job {name}. {e}") from e

    return store.create_job(job)


def delete_batch_job(
    store: TaskStore,
    namespace: str,
    name: str,
    wait: bool,
    *,
    retries: int = DELETE_RETRIES,
    interval: float = DELETE_INTERVAL_SECONDS,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Delete a job with foreground propagation and no grace period.

    With wait=True, poll until the job is gone. Giving up after `retries`
    polls is only logged: the caller proceeds and a later create may conflict.
    """
    try:
        store.delete_job(namespace, name, propagation="Foreground", grace_period_seconds=0)
    except NotFoundError:
        return
    except StoreError as e:
        raise JobDeletionError(f"failed to remove previous provisioning job {name}. {e}") from e

    if not wait:
        return

    for _ in range(retries):
        try:
            store.get_job(namespace, name)
        except NotFoundError:
            log.info("batch job %s deleted", name)
            return
        except StoreError as e:
            log.debug("lookup of batch job %s failed: %s", name, e)

        log.info("batch job %s still exists", name)
        sleep(interval)

    log.warning("gave up waiting for batch job %s to be deleted", name)


class AggregateJobStatus:
    """
    Status of a group of jobs seen as one: `succeeded` counts jobs that reached
    their completions and `required` is the number of jobs in the group.
    """

    def __init__(self, store: TaskStore, jobs: Sequence[JobHandle]):
        self.store = store
        self.jobs = list(jobs)

    def __call__(self) -> JobStatus:
        active = failed = done = 0
        for job in self.jobs:
            st = self.store.get_job(job.namespace, job.name).status
            active += st.active
            failed += st.failed
            if st.succeeded >= st.required:
                done += 1
        return JobStatus(active=active, succeeded=done, failed=failed, required=len(self.jobs))


def _watch(
    fetch_status: Callable[[], JobStatus],
    name: str,
    interval: float,
    timeout: float,
    clock: Callable[[], float],
    sleep: Callable[[float], None],
) -> bool:
    deadline = clock() + timeout
    while True:
        remaining = deadline - clock()
        if remaining < interval:
            if remaining > 0:
                sleep(remaining)
            log.error("stop waiting for job %s: check time exceeded %ss", name, timeout)
            return False

        sleep(interval)

        try:
            status = fetch_status()
        except Exception as e:
            log.error("failed to get job %s in cluster: %s", name, e)
            return False

        if status.succeeded >= status.required:
            log.info("job %s has succeeded", name)
            return True
        log.info(
            "job %s is running (active=%d succeeded=%d/%d failed=%d)",
            name, status.active, status.succeeded, status.required, status.failed,
        )


def check_job_status(
    fetch_status: Callable[[], JobStatus],
    chn: "queue.Queue[bool]",
    *,
    name: str,
    interval: float,
    timeout: float,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """
    Poll fetch_status every `interval` seconds and put exactly one bool on chn:
    True once the required completions are reached, False on a fetch error or
    when `timeout` elapses first.
    """
    result = False
    try:
        result = _watch(fetch_status, name, interval, timeout, clock, sleep)
    finally:
        chn.put_nowait(result)


def start_job_watcher(
    fetch_status: Callable[[], JobStatus],
    *,
    name: str,
    interval: float,
    timeout: float,
) -> "queue.Queue[bool]":
    """Run check_job_status on a daemon thread; the caller blocks on .get()."""
    chn: "queue.Queue[bool]" = queue.Queue(maxsize=1)
    t = threading.Thread(
        target=check_job_status,
        args=(fetch_status, chn),
        kwargs={"name": name, "interval": interval, "timeout": timeout},
        name=f"job-watcher-{name}",
        daemon=True,
    )
    t.start()
    return chn
