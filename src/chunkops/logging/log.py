# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

#src/chunkops/logging/log.py

from __future__ import annotations

import logging
from pathlib import Path
from datetime import datetime, timezone
import uuid

DEFAULT_KEEP_RUNS = 20


class RunContextFilter(logging.Filter):
    """Stamps every record with the cluster and a short run id."""

    def __init__(self, cluster: str, run_id: str):
        super().__init__()
        self.cluster = cluster
        self.short_run_id = run_id[:8]

    def filter(self, record: logging.LogRecord) -> bool:
        record.cluster = self.cluster
        record.run = self.short_run_id
        return True


def prune_run_logs(base_dir: Path, cluster: str, keep: int) -> list[Path]:
    """Delete all but the newest `keep` run logs of `cluster`; returns what was removed."""
    logs = sorted(base_dir.glob(f"{cluster}-*.log"), key=lambda p: p.stat().st_mtime, reverse=True)
    removed = []
    for old in logs[max(keep, 0):]:
        old.unlink(missing_ok=True)
        removed.append(old)
    return removed


def init_logging(
    *,
    base_dir: Path | None = None,
    name: str = "chunkops",
    cluster: str = "cluster",
    verbose: bool = False,
    keep_runs: int = DEFAULT_KEEP_RUNS,
) -> tuple[logging.Logger, str, Path]:
    """
    One log file per provisioning run, named <cluster>-<ts>-<run_id>.log.
    Format jobs can run for hours, so older runs of the same cluster are
    pruned down to `keep_runs` before the new file is opened.
    """
    run_id = str(uuid.uuid4())

    if base_dir is None:
        base_dir = Path.home() / ".chunkops" / "logs"
    base_dir.mkdir(parents=True, exist_ok=True)
    removed = prune_run_logs(base_dir, cluster, keep_runs - 1)

    ts = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    log_path = base_dir / f"{cluster}-{ts}-{run_id}.log"

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    for h in list(logger.handlers):
        h.close()
        logger.removeHandler(h)
    logger.propagate = False

    # watcher threads log alongside the pipeline, so the thread goes in the file
    file_fmt = logging.Formatter(
        "%(asctime)s | %(levelname)-7s | %(cluster)s/%(run)s | %(threadName)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    console_fmt = logging.Formatter("%(asctime)s | %(levelname)-7s | %(message)s", datefmt="%H:%M:%S")
    ctx = RunContextFilter(cluster, run_id)

    fh = logging.FileHandler(log_path)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(file_fmt)
    fh.addFilter(ctx)

    ch = logging.StreamHandler()
    ch.setLevel(logging.DEBUG if verbose else logging.INFO)
    ch.setFormatter(console_fmt)
    ch.addFilter(ctx)

    logger.addHandler(fh)
    logger.addHandler(ch)

    logger.info("=== provisioning run for %s started ===", cluster)
    logger.info("run_id=%s", run_id)
    logger.info("log_file=%s", log_path)
    if removed:
        logger.debug("pruned %d old run logs", len(removed))

    return logger, run_id, log_path
