# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Velero restore finalizer module."""

from .crds import Backup, Restore, RestorePhase
from .errors import (
    BackupStoreError,
    PVClaimMismatchError,
    PVPatchError,
    RestoreFinalizerError,
    VeleroError,
)
from .finalizer import (
    FINALIZATION_TASKS,
    FinalizerContext,
    get_restored_pvcs,
    need_patch,
    patch_dynamic_pv,
    patch_dynamic_pvs,
)
from .persistence import BackupStore, BackupStoreGetter, PluginManager, RestoreMetrics
from .reconciler import BackupInfo, RestoreFinalizerReconciler
from .results import Result
from .volume import BackupMethod, PVInfo, ReclaimPolicy, VolumeInfo, parse_volume_infos

__all__ = [
    "Backup",
    "BackupInfo",
    "BackupMethod",
    "BackupStore",
    "BackupStoreError",
    "BackupStoreGetter",
    "FINALIZATION_TASKS",
    "FinalizerContext",
    "PVClaimMismatchError",
    "PVInfo",
    "PVPatchError",
    "PluginManager",
    "ReclaimPolicy",
    "Restore",
    "RestoreFinalizerError",
    "RestoreFinalizerReconciler",
    "RestoreMetrics",
    "RestorePhase",
    "Result",
    "VeleroError",
    "VolumeInfo",
    "get_restored_pvcs",
    "need_patch",
    "parse_volume_infos",
    "patch_dynamic_pv",
    "patch_dynamic_pvs",
]
