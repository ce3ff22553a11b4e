# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/observers/interface.py
from __future__ import annotations
from typing import Protocol
from .events import BaseEvent


class Observer(Protocol):
    """Receives every provisioning event; must not raise into the pipeline."""

    def notify(self, event: BaseEvent) -> None: ...
