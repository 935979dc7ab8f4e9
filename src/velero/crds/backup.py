# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Subset of the Velero Backup CRD model.

Only the fields read while finalizing a restore are modelled.

Reference: https://velero.io/docs/v1.16/api-types/backup
"""

from typing import Optional

from lightkube.codecs import resource_registry
from lightkube.core import resource as res
from lightkube.core.schema import DictMixin, dataclass
from lightkube.models import meta_v1


@dataclass
class BackupSpecModel(DictMixin):
    """Backup specification model."""

    storageLocation: Optional[str] = None


@dataclass
class BackupModel(DictMixin):
    """Backup model representing the Velero Backup CRD."""

    apiVersion: Optional[str] = None
    kind: Optional[str] = None
    metadata: Optional[meta_v1.ObjectMeta] = None
    spec: Optional[BackupSpecModel] = None


@resource_registry.register
class Backup(res.NamespacedResourceG, BackupModel):
    """Backup resource for the Velero Backup CRD."""

    _api_info = res.ApiInfo(
        resource=res.ResourceDef("velero.io", "v1", "Backup"),
        plural="backups",
        verbs=["get", "global_list", "global_watch", "list", "watch"],
    )
