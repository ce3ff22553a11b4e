# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/cli/app.py
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer

from chunkops.chunkserver.cluster import ChunkserverCluster
from chunkops.chunkserver.launcher import ChunkserverLauncher
from chunkops.chunkserver.planner import resolve_node_ips, validate_storage
from chunkops.chunkserver.pool import PoolJobCreator
from chunkops.config.loader import load_config
from chunkops.config.settings import load_runtime_settings
from chunkops.errors import ConfigurationError, ProvisionError
from chunkops.k8s.client import KubeTaskStore, load_kube_config
from chunkops.k8s.conditions import CustomResourceConditionSink
from chunkops.k8s.owner import OwnerInfo
from chunkops.logging.log import init_logging
from chunkops.observers.dispatcher import EventBus
from chunkops.observers.logger import LoggerObserver


app = typer.Typer(help="chunkops: chunkserver provisioning for curve clusters")


@app.command()
def validate(
    config: Path = typer.Option(..., "--config", "-c", exists=True, help="Cluster YAML"),
):
    """Check the storage section of a cluster spec without touching the cluster."""
    spec = load_config(config)
    try:
        validate_storage(spec)
    except ConfigurationError as e:
        typer.secho(f"invalid: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=2)
    typer.secho(f"{spec.name}: storage spec OK", fg=typer.colors.GREEN)


@app.command()
def provision(
    config: Path = typer.Option(..., "--config", "-c", exists=True, help="Cluster YAML"),
    kube_context: Optional[str] = typer.Option(None, "--context", help="kubeconfig context"),
    in_cluster: bool = typer.Option(False, "--in-cluster", help="Use the pod service account"),
    format_timeout: Optional[float] = typer.Option(None, help="Seconds to wait for format jobs"),
    verbose: bool = typer.Option(False, "--verbose", "-v"),
):
    """Format devices, create pools and start chunkservers for the cluster in CONFIG."""
    spec = load_config(config)
    try:
        validate_storage(spec)
    except ConfigurationError as e:
        typer.secho(f"invalid: {e}", fg=typer.colors.RED)
        raise typer.Exit(code=2)

    settings = load_runtime_settings()
    logger, run_id, log_path = init_logging(cluster=spec.name, verbose=verbose)

    load_kube_config(kube_context or settings.kube_context, in_cluster=in_cluster)
    store = KubeTaskStore()
    owner = None
    if spec.uid:
        owner = OwnerInfo(api_version="operator.curve.io/v1", kind="CurveCluster", name=spec.name, uid=spec.uid)

    node_ip_map = resolve_node_ips(store, spec)

    cluster = ChunkserverCluster(
        store,
        spec,
        pool_creator=PoolJobCreator(store, spec, owner=owner, timeout_seconds=settings.pool_timeout_seconds),
        launcher=ChunkserverLauncher(store, spec, owner=owner,
                                     rollout_timeout_seconds=settings.rollout_timeout_seconds),
        conditions=CustomResourceConditionSink(),
        owner=owner,
        bus=EventBus([LoggerObserver(logger)]),
        run_id=run_id,
        format_timeout_seconds=format_timeout or settings.format_timeout_seconds,
        format_poll_seconds=settings.format_poll_seconds,
    )

    try:
        plan = cluster.start(node_ip_map)
    except ProvisionError as e:
        logger.error("provisioning failed in stage %s: %s", cluster.failed_stage, e)
        typer.secho(f"FAILED: {e} (log: {log_path})", fg=typer.colors.RED)
        raise typer.Exit(code=1)

    typer.secho(f"{len(plan.configs)} chunkservers running (log: {log_path})", fg=typer.colors.GREEN)


def main():
    app()


if __name__ == "__main__":
    main()
