# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/k8s/conditions.py
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from kubernetes import client
from kubernetes.client.exceptions import ApiException

log = logging.getLogger("chunkops")

CONDITION_TRUE = "True"
CONDITION_FALSE = "False"

CONDITION_TYPE_FORMATED_READY = "FormatedReady"
CONDITION_TYPE_CHUNKSERVER_READY = "ChunkServerReady"

REASON_FORMATING_CHUNKFILE_POOL = "FormatingChunkfilePool"
REASON_FORMAT_CHUNKFILE_POOL = "FormatChunkfilePool"
REASON_CHUNKSERVER_CLUSTER_CREATED = "ChunkServerClusterCreated"


class CustomResourceConditionSink:
    """
    Writes status.conditions on the cluster custom resource.
    Reporting only: failures are logged and never interrupt provisioning.
    """

    def __init__(
        self,
        *,
        group: str = "operator.curve.io",
        version: str = "v1",
        plural: str = "curveclusters",
        api_client: Optional[client.ApiClient] = None,
    ):
        self.group = group
        self.version = version
        self.plural = plural
        self.api = client.CustomObjectsApi(api_client)

    def update_condition(
        self,
        namespace: str,
        name: str,
        condition_type: str,
        status: str,
        reason: str,
        message: str,
    ) -> None:
        try:
            obj = self.api.get_namespaced_custom_object_status(
                self.group, self.version, namespace, self.plural, name
            )
            conditions = list((obj.get("status") or {}).get("conditions") or [])
            conditions = merge_condition(conditions, condition_type, status, reason, message)
            self.api.patch_namespaced_custom_object_status(
                self.group,
                self.version,
                namespace,
                self.plural,
                name,
                {"status": {"conditions": conditions}},
            )
        except ApiException as e:
            log.warning(
                "failed to update condition %s on %s/%s: %s %s",
                condition_type, namespace, name, e.status, e.reason,
            )


def merge_condition(
    conditions: list,
    condition_type: str,
    status: str,
    reason: str,
    message: str,
) -> list:
    """Replace the condition of the same type, keeping lastTransitionTime when status is unchanged."""
    now = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    out = []
    transition = now
    for cond in conditions:
        if cond.get("type") == condition_type:
            if cond.get("status") == status and cond.get("lastTransitionTime"):
                transition = cond["lastTransitionTime"]
            continue
        out.append(cond)
    out.append({
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": transition,
    })
    return out
