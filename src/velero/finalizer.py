# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Finalization tasks run after the items of a restore have been created.

The only task today re-applies the reclaim policy and labels recorded at backup time
onto the PersistentVolumes that were dynamically provisioned for restored claims.
"""

import logging
import re
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Set, Tuple

import httpx
from lightkube import Client
from lightkube.resources.core_v1 import PersistentVolume, PersistentVolumeClaim

from config import FinalizerConfig
from constants import (
    ITEM_RESTORE_RESULT_CREATED,
    RESTORED_PVC_RESOURCE_KEY,
    ClaimPhase,
    VolumePhase,
)
from k8s_utils import PollTimeoutError, k8s_get_or_none, k8s_patch_resource, k8s_poll_until

from .crds import Restore
from .errors import PVClaimMismatchError, PVPatchError
from .results import Result
from .volume import BackupMethod, PVInfo, VolumeInfo

logger = logging.getLogger(__name__)

_ITEM_STATUS_PATTERN = re.compile(r"\(([^)]+)\)")
_DYNAMIC_PV_BACKUP_METHODS = (BackupMethod.PodVolumeBackup, BackupMethod.CSISnapshot)

FinalizationTask = Callable[["FinalizerContext"], Result]


def get_restored_pvcs(restored_resources: Dict[str, List[str]]) -> Set[str]:
    """Return the "namespace/name" keys of the PVCs created by the restore.

    Entries of the restored resource list look like "namespace/name(status)". Only the
    last parenthesized group is the status, so earlier parentheses in a name are kept.
    """
    suffix = f"({ITEM_RESTORE_RESULT_CREATED})"
    pvcs = set()
    for item in restored_resources.get(RESTORED_PVC_RESOURCE_KEY, []):
        matches = _ITEM_STATUS_PATTERN.findall(item)
        if matches and matches[-1] == ITEM_RESTORE_RESULT_CREATED:
            pvcs.add(item[: -len(suffix)])
    return pvcs


def need_patch(pv: PersistentVolume, pv_info: PVInfo) -> bool:
    """Return True if the PV reclaim policy or labels differ from the recorded ones.

    Labels present on the PV but not recorded are ignored.
    """
    reclaim_policy = pv.spec.persistentVolumeReclaimPolicy if pv.spec else None
    if reclaim_policy != pv_info.reclaim_policy.value:
        return True

    labels = (pv.metadata.labels if pv.metadata else None) or {}
    for key, value in pv_info.labels.items():
        if key not in labels or labels[key] != value:
            return True

    return False


@dataclass
class FinalizerContext:
    """Everything the finalization tasks of a single reconcile pass depend on."""

    restore: Restore
    kube_client: Client
    volume_infos: List[VolumeInfo]
    restored_pvcs: Set[str]
    config: FinalizerConfig = field(default_factory=FinalizerConfig)
    tasks: List[FinalizationTask] = field(default_factory=lambda: list(FINALIZATION_TASKS))

    def execute(self) -> Tuple[Result, Result]:
        """Run the finalization tasks in order and return the merged warnings and errors."""
        warnings, errs = Result(), Result()

        for task in self.tasks:
            errs.merge(task(self))

        return warnings, errs

    def restored_namespace(self, namespace: str) -> str:
        """Return the namespace a backed up namespace was restored into."""
        mapping = (self.restore.spec.namespaceMapping if self.restore.spec else None) or {}
        return mapping.get(namespace, namespace)

    def dynamic_pv_candidates(self) -> Iterator[Tuple[VolumeInfo, str]]:
        """Yield the volumes whose PV settings should be re-applied, with their namespace."""
        for volume in self.volume_infos:
            if volume.backup_method not in _DYNAMIC_PV_BACKUP_METHODS or volume.pv_info is None:
                continue
            namespace = self.restored_namespace(volume.pvc_namespace)
            if f"{namespace}/{volume.pvc_name}" not in self.restored_pvcs:
                continue
            yield volume, namespace


def patch_dynamic_pv(ctx: FinalizerContext, volume: VolumeInfo, namespace: str) -> None:
    """Wait for a restored PVC to be bound and re-apply the recorded settings to its PV.

    Args:
        ctx (FinalizerContext): The finalization context.
        volume (VolumeInfo): The volume info of the restored PVC.
        namespace (str): The namespace the PVC was restored into.

    Raises:
        PollTimeoutError: If the PVC and PV are not bound before the deadline.
        PVClaimMismatchError: If the PV is bound to another claim.
        httpx.HTTPError: If fetching or patching a resource fails, including lightkube
            ApiErrors.
    """
    pv_info = volume.pv_info
    kube_client = ctx.kube_client

    def patch_when_bound() -> bool:
        pvc = k8s_get_or_none(kube_client, PersistentVolumeClaim, volume.pvc_name, namespace)
        if pvc is None:
            logger.debug("PVC %s/%s not found", namespace, volume.pvc_name)
            return False
        if not pvc.status or pvc.status.phase != ClaimPhase.Bound or not pvc.spec:
            logger.debug("PVC %s/%s not ready", namespace, volume.pvc_name)
            return False
        if not pvc.spec.volumeName:
            logger.debug("PVC %s/%s not bound to a volume yet", namespace, volume.pvc_name)
            return False

        pv_name = pvc.spec.volumeName
        pv = k8s_get_or_none(kube_client, PersistentVolume, pv_name)
        if pv is None:
            logger.debug("PV %s not found", pv_name)
            return False
        claim_ref = pv.spec.claimRef if pv.spec else None
        if claim_ref is None or not pv.status or pv.status.phase != VolumePhase.Bound:
            logger.debug("PV %s not ready", pv_name)
            return False

        if claim_ref.name != pvc.metadata.name or claim_ref.namespace != namespace:
            raise PVClaimMismatchError(
                "PV was bound by unexpected PVC, unexpected PVC: "
                f"{claim_ref.namespace}/{claim_ref.name}, "
                f"expected PVC: {namespace}/{pvc.metadata.name}"
            )

        if need_patch(pv, pv_info):
            updated = deepcopy(pv)
            updated.metadata.labels = dict(pv_info.labels)
            updated.spec.persistentVolumeReclaimPolicy = pv_info.reclaim_policy.value
            k8s_patch_resource(kube_client, pv, updated, field_manager=ctx.config.field_manager)
            logger.info(
                "newly dynamically provisioned PV:%s has been patched using volume info", pv_name
            )

        return True

    k8s_poll_until(
        patch_when_bound,
        interval=ctx.config.pv_patch_poll_interval,
        timeout=ctx.config.pv_patch_timeout,
    )


def patch_dynamic_pvs(ctx: FinalizerContext) -> Result:
    """Re-apply recorded reclaim policies and labels to dynamically provisioned PVs.

    Every eligible volume is handled by its own worker, at most
    ``pv_patch_max_concurrency`` of them talking to the API server at the same time.
    Workers never raise: their failures are returned under the restored namespace.
    """
    logger.info("patching newly dynamically provisioned PV starts")

    errs = Result()
    result_lock = threading.Lock()
    semaphore = threading.Semaphore(ctx.config.pv_patch_max_concurrency)

    def worker(volume: VolumeInfo, namespace: str) -> None:
        with semaphore:
            logger.debug(
                "patching dynamic PV of PVC %s/%s is in progress", namespace, volume.pvc_name
            )
            try:
                patch_dynamic_pv(ctx, volume, namespace)
            except (httpx.HTTPError, PollTimeoutError, PVPatchError) as err:
                message = (
                    f"fail to patch dynamic PV, err: {err}, "
                    f"PVC: {volume.pvc_name}, PV: {volume.pv_name}"
                )
                logger.error("err patching dynamic PV using volume info: %s", message)
                with result_lock:
                    errs.add(namespace, message)

    candidates = list(ctx.dynamic_pv_candidates())
    if candidates:
        max_workers = min(len(candidates), ctx.config.pv_patch_max_concurrency)
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(worker, volume, ns) for volume, ns in candidates]
            wait(futures)
        for future in futures:
            future.result()

    logger.info("patching newly dynamically provisioned PV ends")
    return errs


FINALIZATION_TASKS: List[FinalizationTask] = [patch_dynamic_pvs]
