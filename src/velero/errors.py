# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Velero restore finalizer exceptions."""


class VeleroError(Exception):
    """Base class for Velero exceptions."""


class RestoreFinalizerError(VeleroError):
    """Raised when a restore cannot be finalized in this pass and must be retried."""


class PVPatchError(VeleroError):
    """Base class for errors re-applying the recorded settings of a PersistentVolume."""


class PVClaimMismatchError(PVPatchError):
    """Raised when a PersistentVolume is bound to a different claim than expected."""


class BackupStoreError(VeleroError):
    """Raised by backup stores when metadata cannot be read from or written to storage."""
