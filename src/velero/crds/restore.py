# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Subset of the Velero Restore CRD model.

Reference: https://velero.io/docs/v1.16/api-types/restore
"""

from enum import Enum
from typing import Dict, Optional

from lightkube.codecs import resource_registry
from lightkube.core import resource as res
from lightkube.core.schema import DictMixin, dataclass
from lightkube.models import meta_v1


class RestorePhase(str, Enum):
    """Restore phase enum."""

    New = "New"
    FailedValidation = "FailedValidation"
    InProgress = "InProgress"
    WaitingForPluginOperations = "WaitingForPluginOperations"
    WaitingForPluginOperationsPartiallyFailed = "WaitingForPluginOperationsPartiallyFailed"
    Finalizing = "Finalizing"
    FinalizingPartiallyFailed = "FinalizingPartiallyFailed"
    Completed = "Completed"
    PartiallyFailed = "PartiallyFailed"
    Failed = "Failed"


@dataclass
class RestoreSpecModel(DictMixin):
    """Restore specification model."""

    backupName: str
    scheduleName: Optional[str] = None
    namespaceMapping: Optional[Dict[str, str]] = None
    restorePVs: Optional[bool] = None


@dataclass
class RestoreStatusModel(DictMixin):
    """Restore status model."""

    phase: Optional[str] = None
    warnings: Optional[int] = None
    errors: Optional[int] = None
    failureReason: Optional[str] = None
    startTimestamp: Optional[str] = None
    completionTimestamp: Optional[str] = None


@dataclass
class RestoreModel(DictMixin):
    """Restore model representing the Velero Restore CRD."""

    apiVersion: Optional[str] = None
    kind: Optional[str] = None
    metadata: Optional[meta_v1.ObjectMeta] = None
    spec: Optional[RestoreSpecModel] = None
    status: Optional[RestoreStatusModel] = None


@resource_registry.register
class Restore(res.NamespacedResourceG, RestoreModel):
    """Restore resource for the Velero Restore CRD."""

    _api_info = res.ApiInfo(
        resource=res.ResourceDef("velero.io", "v1", "Restore"),
        plural="restores",
        verbs=[
            "get",
            "global_list",
            "global_watch",
            "list",
            "patch",
            "watch",
        ],
    )
