# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/k8s/errors.py
from __future__ import annotations

from kubernetes.client.exceptions import ApiException


class StoreError(RuntimeError):
    """Lookup/create/delete against the API server failed."""


class NotFoundError(StoreError):
    pass


class AlreadyExistsError(StoreError):
    pass


def translate_api_exception(exc: ApiException, what: str) -> StoreError:
    if exc.status == 404:
        return NotFoundError(f"{what} not found")
    if exc.status == 409:
        return AlreadyExistsError(f"{what} already exists")
    return StoreError(f"{what}: {exc.status} {exc.reason}")
