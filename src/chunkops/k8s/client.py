# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/k8s/client.py
from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from .errors import StoreError, translate_api_exception
from .interface import JobHandle, JobStatus, NodeInfo
from .owner import OwnerInfo

log = logging.getLogger("chunkops")

HOSTNAME_LABEL = "kubernetes.io/hostname"


def load_kube_config(kube_context: Optional[str] = None, in_cluster: bool = False) -> None:
    if in_cluster:
        config.load_incluster_config()
    elif kube_context:
        config.load_kube_config(context=kube_context)
    else:
        config.load_kube_config()


def _job_handle(job) -> JobHandle:
    st = job.status
    completions = job.spec.completions if job.spec and job.spec.completions else 1
    return JobHandle(
        name=job.metadata.name,
        namespace=job.metadata.namespace,
        status=JobStatus(
            active=(st.active or 0) if st else 0,
            succeeded=(st.succeeded or 0) if st else 0,
            failed=(st.failed or 0) if st else 0,
            required=completions,
        ),
    )


def _node_ready(node) -> bool:
    if node.spec and node.spec.unschedulable:
        return False
    for cond in (node.status.conditions or []) if node.status else []:
        if cond.type == "Ready":
            return cond.status == "True"
    return False


class KubeTaskStore:
    """
    TaskStore backed by the official kubernetes client.
    Every ApiException is translated into the chunkops.k8s.errors taxonomy.
    """

    def __init__(self, api_client: Optional[client.ApiClient] = None):
        self.batch = client.BatchV1Api(api_client)
        self.core = client.CoreV1Api(api_client)
        self.apps = client.AppsV1Api(api_client)

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def get_job(self, namespace: str, name: str) -> JobHandle:
        try:
            job = self.batch.read_namespaced_job(name=name, namespace=namespace)
        except ApiException as e:
            raise translate_api_exception(e, f"job {namespace}/{name}") from e
        return _job_handle(job)

    def create_job(self, manifest: dict) -> JobHandle:
        meta = manifest["metadata"]
        try:
            job = self.batch.create_namespaced_job(namespace=meta["namespace"], body=manifest)
        except ApiException as e:
            raise translate_api_exception(e, f"job {meta['namespace']}/{meta['name']}") from e
        handle = _job_handle(job)
        handle.manifest = manifest
        return handle

    def delete_job(
        self,
        namespace: str,
        name: str,
        *,
        propagation: str = "Foreground",
        grace_period_seconds: int = 0,
    ) -> None:
        body = client.V1DeleteOptions(
            propagation_policy=propagation,
            grace_period_seconds=grace_period_seconds,
        )
        try:
            self.batch.delete_namespaced_job(name=name, namespace=namespace, body=body)
        except ApiException as e:
            raise translate_api_exception(e, f"job {namespace}/{name}") from e

    # ------------------------------------------------------------------
    # ConfigMaps
    # ------------------------------------------------------------------

    @staticmethod
    def _config_map_body(namespace: str, name: str, data: Dict[str, str], owner: Optional[OwnerInfo]) -> dict:
        body = {
            "apiVersion": "v1",
            "kind": "ConfigMap",
            "metadata": {"name": name, "namespace": namespace},
            "data": data,
        }
        if owner:
            owner.set_controller_reference(body)
        return body

    def create_config_map(
        self,
        namespace: str,
        name: str,
        data: Dict[str, str],
        *,
        owner: Optional[OwnerInfo] = None,
    ) -> None:
        body = self._config_map_body(namespace, name, data, owner)
        try:
            self.core.create_namespaced_config_map(namespace=namespace, body=body)
        except ApiException as e:
            raise translate_api_exception(e, f"configmap {namespace}/{name}") from e

    def apply_config_map(
        self,
        namespace: str,
        name: str,
        data: Dict[str, str],
        *,
        owner: Optional[OwnerInfo] = None,
    ) -> None:
        """Create the config map, or replace its data when it already exists."""
        body = self._config_map_body(namespace, name, data, owner)
        try:
            self.core.create_namespaced_config_map(namespace=namespace, body=body)
            return
        except ApiException as e:
            if e.status != 409:
                raise translate_api_exception(e, f"configmap {namespace}/{name}") from e
        try:
            self.core.replace_namespaced_config_map(name=name, namespace=namespace, body=body)
        except ApiException as e:
            raise translate_api_exception(e, f"configmap {namespace}/{name}") from e

    def get_config_map(self, namespace: str, name: str) -> Dict[str, str]:
        try:
            cm = self.core.read_namespaced_config_map(name=name, namespace=namespace)
        except ApiException as e:
            raise translate_api_exception(e, f"configmap {namespace}/{name}") from e
        return dict(cm.data or {})

    # ------------------------------------------------------------------
    # Nodes
    # ------------------------------------------------------------------

    def _list_nodes(self) -> list:
        try:
            return self.core.list_node().items
        except ApiException as e:
            raise translate_api_exception(e, "nodes") from e

    def get_node_hostnames(self) -> Dict[str, str]:
        """Map node name -> kubernetes.io/hostname label (falls back to name)."""
        out: Dict[str, str] = {}
        for node in self._list_nodes():
            labels = node.metadata.labels or {}
            out[node.metadata.name] = labels.get(HOSTNAME_LABEL, node.metadata.name)
        return out

    def list_valid_nodes(self, hostnames: List[str]) -> List[NodeInfo]:
        """Nodes whose hostname is requested, Ready and schedulable, in request order."""
        by_hostname = {}
        for node in self._list_nodes():
            labels = node.metadata.labels or {}
            by_hostname[labels.get(HOSTNAME_LABEL, node.metadata.name)] = node

        valid: List[NodeInfo] = []
        for hostname in hostnames:
            node = by_hostname.get(hostname)
            if node is None:
                log.warning("node with hostname %s not found in cluster", hostname)
                continue
            if not _node_ready(node):
                log.warning("node %s is not ready or not schedulable", node.metadata.name)
                continue
            valid.append(NodeInfo(name=node.metadata.name, hostname=hostname))
        return valid

    def resolve_node_address(self, node_name: str) -> str:
        try:
            node = self.core.read_node(name=node_name)
        except ApiException as e:
            raise translate_api_exception(e, f"node {node_name}") from e
        addresses = (node.status.addresses or []) if node.status else []
        for kind in ("InternalIP", "ExternalIP"):
            for addr in addresses:
                if addr.type == kind:
                    return addr.address
        raise StoreError(f"node {node_name} has no InternalIP/ExternalIP address")

    # ------------------------------------------------------------------
    # Deployments
    # ------------------------------------------------------------------

    def apply_deployment(self, manifest: dict) -> None:
        meta = manifest["metadata"]
        try:
            self.apps.create_namespaced_deployment(namespace=meta["namespace"], body=manifest)
            return
        except ApiException as e:
            if e.status != 409:
                raise translate_api_exception(e, f"deployment {meta['namespace']}/{meta['name']}") from e
        try:
            self.apps.replace_namespaced_deployment(
                name=meta["name"], namespace=meta["namespace"], body=manifest
            )
        except ApiException as e:
            raise translate_api_exception(e, f"deployment {meta['namespace']}/{meta['name']}") from e

    def wait_for_rollout(
        self,
        namespace: str,
        selector: str,
        timeout_seconds: int = 300,
        interval: float = 2.0,
    ) -> None:
        """
        Naive waiter for Deployments matching a label selector.
        Waits until all deployments have availableReplicas == desired.
        """
        end = time.time() + timeout_seconds
        while time.time() < end:
            ready = True
            resp = self.apps.list_namespaced_deployment(namespace=namespace, label_selector=selector)
            for d in resp.items:
                desired = d.spec.replicas or 0
                available = (d.status.available_replicas or 0)
                if available < desired:
                    ready = False
                    break
            if ready:
                return
            time.sleep(interval)

        raise TimeoutError(f"Timeout waiting for rollout: ns={namespace} selector={selector}")
