# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

import threading
import time
from copy import deepcopy
from typing import Any, Dict, List, Optional, Tuple
from unittest.mock import MagicMock

import httpx
from lightkube import ApiError
from lightkube.models.core_v1 import (
    ObjectReference,
    PersistentVolumeClaimSpec,
    PersistentVolumeClaimStatus,
    PersistentVolumeSpec,
    PersistentVolumeStatus,
)
from lightkube.models.meta_v1 import ObjectMeta
from lightkube.resources.core_v1 import PersistentVolume, PersistentVolumeClaim

from config import FinalizerConfig
from velero import (
    BackupMethod,
    BackupStore,
    BackupStoreError,
    PluginManager,
    PVInfo,
    ReclaimPolicy,
    Restore,
    RestoreMetrics,
    Result,
    VolumeInfo,
)
from velero.crds import RestoreSpecModel, RestoreStatusModel

NAMESPACE = "velero"
RESTORE_NAME = "restore-1"
BACKUP_NAME = "backup-1"

FAST_CONFIG = FinalizerConfig(pv_patch_poll_interval=0.01, pv_patch_timeout=0.1)


def api_error(code: int) -> ApiError:
    """Return a lightkube ApiError with the given status code."""
    mock_response = MagicMock(spec=httpx.Response)
    mock_response.json.return_value = {"code": code, "message": f"error {code}"}
    return ApiError(request=MagicMock(), response=mock_response)


def make_pvc(
    name: str, namespace: str, volume_name: Optional[str] = None, phase: str = "Bound"
) -> PersistentVolumeClaim:
    return PersistentVolumeClaim(
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec=PersistentVolumeClaimSpec(volumeName=volume_name),
        status=PersistentVolumeClaimStatus(phase=phase),
    )


def make_pv(
    name: str,
    claim_name: Optional[str],
    claim_namespace: Optional[str],
    reclaim_policy: str = "Delete",
    labels: Optional[Dict[str, str]] = None,
    phase: str = "Bound",
) -> PersistentVolume:
    claim_ref = None
    if claim_name is not None:
        claim_ref = ObjectReference(name=claim_name, namespace=claim_namespace)
    return PersistentVolume(
        metadata=ObjectMeta(name=name, labels=labels),
        spec=PersistentVolumeSpec(
            claimRef=claim_ref, persistentVolumeReclaimPolicy=reclaim_policy
        ),
        status=PersistentVolumeStatus(phase=phase),
    )


def make_volume_info(
    pvc_name: str,
    pvc_namespace: str,
    pv_name: str,
    backup_method: Optional[BackupMethod] = BackupMethod.CSISnapshot,
    reclaim_policy: ReclaimPolicy = ReclaimPolicy.Retain,
    labels: Optional[Dict[str, str]] = None,
    with_pv_info: bool = True,
) -> VolumeInfo:
    pv_info = PVInfo(reclaim_policy=reclaim_policy, labels=labels or {}) if with_pv_info else None
    return VolumeInfo(
        backup_method=backup_method,
        pvc_name=pvc_name,
        pvc_namespace=pvc_namespace,
        pv_name=pv_name,
        pv_info=pv_info,
    )


def make_restore(
    phase: Optional[str],
    namespace_mapping: Optional[Dict[str, str]] = None,
    warnings: Optional[int] = None,
    errors: Optional[int] = None,
    schedule_name: Optional[str] = None,
) -> Restore:
    return Restore(
        apiVersion="velero.io/v1",
        kind="Restore",
        metadata=ObjectMeta(name=RESTORE_NAME, namespace=NAMESPACE),
        spec=RestoreSpecModel(
            backupName=BACKUP_NAME,
            scheduleName=schedule_name,
            namespaceMapping=namespace_mapping,
        ),
        status=RestoreStatusModel(phase=phase, warnings=warnings, errors=errors),
    )


class FakeCluster:
    """In-memory stand-in for the lightkube Client.

    Tracks how many get/patch calls are running at the same time.
    """

    def __init__(self, delay: float = 0.0) -> None:
        self.objects: Dict[Tuple[Any, Optional[str], str], Any] = {}
        self.patches: List[Dict[str, Any]] = []
        self.delay = delay
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def add(self, resource_type: Any, obj: Any, name: str, namespace: Optional[str] = None):
        self.objects[(resource_type, namespace, name)] = obj

    def _enter(self) -> None:
        with self._lock:
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)

    def _exit(self) -> None:
        with self._lock:
            self.in_flight -= 1

    def get(self, resource_type, name, namespace=None):
        self._enter()
        try:
            if self.delay:
                time.sleep(self.delay)
            obj = self.objects.get((resource_type, namespace, name))
            if obj is None:
                raise api_error(404)
            return deepcopy(obj)
        finally:
            self._exit()

    def patch(self, resource_type, name, obj, *, namespace=None, patch_type=None, **kwargs):
        self._enter()
        try:
            with self._lock:
                self.patches.append(
                    {
                        "type": resource_type,
                        "name": name,
                        "namespace": namespace,
                        "patch": obj,
                        "patch_type": patch_type,
                    }
                )
        finally:
            self._exit()

    def patches_for(self, resource_type) -> List[Dict[str, Any]]:
        return [p for p in self.patches if p["type"] is resource_type]


class FakeBackupStore(BackupStore):
    def __init__(
        self,
        volume_infos: Optional[List[VolumeInfo]] = None,
        restored_resources: Optional[Dict[str, List[str]]] = None,
        stored_results: Optional[Dict[str, Result]] = None,
        fail_on: Optional[str] = None,
    ) -> None:
        self.volume_infos = volume_infos or []
        self.restored_resources = restored_resources or {}
        self.stored_results = stored_results or {}
        self.fail_on = fail_on
        self.put_calls: List[Tuple[str, Dict[str, Result]]] = []

    def _check(self, operation: str) -> None:
        if self.fail_on == operation:
            raise BackupStoreError(f"{operation} failed")

    def get_backup_volume_infos(self, backup_name):
        self._check("get_backup_volume_infos")
        return self.volume_infos

    def get_restored_resource_list(self, restore_name):
        self._check("get_restored_resource_list")
        return self.restored_resources

    def get_restore_results(self, restore_name):
        self._check("get_restore_results")
        return self.stored_results

    def put_restore_results(self, restore_name, results):
        self._check("put_restore_results")
        self.put_calls.append((restore_name, results))


class FakePluginManager(PluginManager):
    def __init__(self) -> None:
        self.cleanup_count = 0

    def cleanup_clients(self):
        self.cleanup_count += 1


class FakeMetrics(RestoreMetrics):
    def __init__(self) -> None:
        self.successes: List[str] = []
        self.partial_failures: List[str] = []

    def register_restore_success(self, schedule):
        self.successes.append(schedule)

    def register_restore_partial_failure(self, schedule):
        self.partial_failures.append(schedule)
