# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Velero CRDs module."""

from .backup import Backup, BackupModel, BackupSpecModel
from .restore import Restore, RestoreModel, RestorePhase, RestoreSpecModel, RestoreStatusModel

__all__ = [
    "Backup",
    "Restore",
    "RestorePhase",
    "BackupSpecModel",
    "BackupModel",
    "RestoreSpecModel",
    "RestoreStatusModel",
    "RestoreModel",
]
