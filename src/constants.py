# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""File containing constants."""

from enum import Enum

from lightkube.generic_resource import create_namespaced_resource

VELERO_NAMESPACE = "velero"
VELERO_FIELD_MANAGER = "velero-restore-finalizer"

PV_PATCH_POLL_INTERVAL = 10
PV_PATCH_MAXIMUM_DURATION = 10 * 60
PV_PATCH_MAX_CONCURRENCY = 3

RESTORED_PVC_RESOURCE_KEY = "v1/PersistentVolumeClaim"
ITEM_RESTORE_RESULT_CREATED = "created"

RESTORE_RESULTS_WARNINGS_KEY = "warnings"
RESTORE_RESULTS_ERRORS_KEY = "errors"

VELERO_BACKUP_LOCATION_RESOURCE = create_namespaced_resource(
    "velero.io", "v1", "BackupStorageLocation", "backupstoragelocations"
)


class ClaimPhase(str, Enum):
    """PersistentVolumeClaim phase enum."""

    Pending = "Pending"
    Bound = "Bound"
    Lost = "Lost"


class VolumePhase(str, Enum):
    """PersistentVolume phase enum."""

    Pending = "Pending"
    Available = "Available"
    Bound = "Bound"
    Released = "Released"
    Failed = "Failed"
