# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/chunkops/errors.py


class ProvisionError(RuntimeError):
    """Base class for chunkserver provisioning failures."""


class ConfigurationError(ProvisionError):
    """Raised when the cluster spec cannot be provisioned as written."""


class SubmissionError(ProvisionError):
    """Raised when a single device preparation job could not be submitted."""


class JobDeletionError(ProvisionError):
    """Raised when a job delete call is rejected (not when it is slow)."""


class BarrierTimeoutError(ProvisionError):
    """Raised when the format jobs did not all succeed before the deadline."""


class StageError(ProvisionError):
    def __init__(self, stage: str, message: str):
        super().__init__(f"{stage}: {message}")
        self.stage = stage
