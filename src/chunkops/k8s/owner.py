# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/k8s/owner.py
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OwnerInfo:
    """
    Identity of the cluster custom resource that owns every object we create.
    Deleting the cluster resource garbage-collects the jobs and config maps.
    """
    api_version: str
    kind: str
    name: str
    uid: str

    def reference(self) -> dict:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "name": self.name,
            "uid": self.uid,
            "controller": True,
            "blockOwnerDeletion": True,
        }

    def set_controller_reference(self, manifest: dict) -> dict:
        meta = manifest.setdefault("metadata", {})
        refs = [
            r for r in meta.get("ownerReferences", [])
            if not r.get("controller")
        ]
        refs.append(self.reference())
        meta["ownerReferences"] = refs
        return manifest
