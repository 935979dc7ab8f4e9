# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Reconciler driving finalizing Velero restores to their terminal phase."""

import logging
from copy import deepcopy
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
from lightkube import Client
from lightkube.generic_resource import GenericNamespacedResource

from config import FinalizerConfig
from constants import (
    RESTORE_RESULTS_ERRORS_KEY,
    RESTORE_RESULTS_WARNINGS_KEY,
    VELERO_BACKUP_LOCATION_RESOURCE,
)
from k8s_utils import k8s_get_or_none, k8s_patch_resource

from .crds import Backup, Restore, RestorePhase
from .errors import BackupStoreError, RestoreFinalizerError
from .finalizer import FinalizerContext, get_restored_pvcs
from .persistence import BackupStore, BackupStoreGetter, PluginManager, RestoreMetrics
from .results import Result

logger = logging.getLogger(__name__)

FINALIZING_PHASES = (RestorePhase.Finalizing, RestorePhase.FinalizingPartiallyFailed)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class BackupInfo:
    """The backup a restore was created from and its BackupStorageLocation."""

    backup: Backup
    location: GenericNamespacedResource


class RestoreFinalizerReconciler:
    """Finalize restores whose items have all been restored."""

    def __init__(
        self,
        kube_client: Client,
        new_plugin_manager: Callable[[], PluginManager],
        backup_store_getter: BackupStoreGetter,
        metrics: RestoreMetrics,
        config: Optional[FinalizerConfig] = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the RestoreFinalizerReconciler class.

        Args:
            kube_client: The lightkube client used to interact with the cluster.
            new_plugin_manager: Factory for the plugin manager backing the backup store.
            backup_store_getter: Factory for the backup store of a storage location.
            metrics: The restore outcome counters.
            config: The finalizer configuration, defaults are used if omitted.
            clock: Returns the current time, used for the completion timestamp.
        """
        self._kube_client = kube_client
        self._new_plugin_manager = new_plugin_manager
        self._backup_store_getter = backup_store_getter
        self._metrics = metrics
        self._config = config or FinalizerConfig()
        self._clock = clock

    def reconcile(self, name: str, namespace: Optional[str] = None) -> None:
        """Finalize a restore if it is awaiting finalization.

        Args:
            name (str): The name of the restore.
            namespace (Optional[str]): The namespace of the restore, the Velero namespace
                by default.

        Raises:
            RestoreFinalizerError: If this pass failed and the restore must be reconciled
                again. The restore keeps its current phase in that case.
        """
        namespace = namespace or self._config.namespace
        logger.debug("Getting restore %s/%s", namespace, name)

        try:
            original = k8s_get_or_none(self._kube_client, Restore, name, namespace)
        except httpx.HTTPError as ae:
            raise RestoreFinalizerError(f"error getting restore {namespace}/{name}") from ae
        if original is None:
            logger.error("Restore %s/%s not found", namespace, name)
            return

        restore = deepcopy(original)
        phase = restore.status.phase if restore.status else None
        if phase not in FINALIZING_PHASES:
            logger.debug("Restore %s is not awaiting finalization, skipping", name)
            return

        try:
            info = self._fetch_backup_info(restore.spec.backupName, namespace)
        except httpx.HTTPError as ae:
            logger.error("Error getting backup info of restore %s: %s", name, ae)
            raise RestoreFinalizerError("error getting backup info") from ae

        if info is None:
            logger.error("Backup %s not found, skip", restore.spec.backupName)
            self._finish_processing(RestorePhase.PartiallyFailed, restore, original)
            return

        plugin_manager = self._new_plugin_manager()
        try:
            self._finalize(restore, original, info, plugin_manager)
        finally:
            plugin_manager.cleanup_clients()

    def _fetch_backup_info(self, backup_name: str, namespace: str) -> Optional[BackupInfo]:
        """Return the backup and its storage location, or None if either is missing."""
        backup = k8s_get_or_none(self._kube_client, Backup, backup_name, namespace)
        if backup is None:
            return None

        location_name = backup.spec.storageLocation if backup.spec else None
        if not location_name:
            logger.error("Backup %s has no storage location", backup_name)
            return None
        location = k8s_get_or_none(
            self._kube_client, VELERO_BACKUP_LOCATION_RESOURCE, location_name, namespace
        )
        if location is None:
            return None

        return BackupInfo(backup=backup, location=location)

    def _finalize(
        self,
        restore: Restore,
        original: Restore,
        info: BackupInfo,
        plugin_manager: PluginManager,
    ) -> None:
        name = restore.metadata.name
        backup_name = restore.spec.backupName

        try:
            backup_store = self._backup_store_getter.get(info.location, plugin_manager)
        except BackupStoreError as bse:
            logger.error("Error getting backup store: %s", bse)
            raise RestoreFinalizerError("error getting backup store") from bse

        try:
            volume_infos = backup_store.get_backup_volume_infos(backup_name)
        except BackupStoreError as bse:
            logger.error("Error getting volumeInfo for backup %s: %s", backup_name, bse)
            raise RestoreFinalizerError("error getting volumeInfo") from bse

        try:
            restored_resources = backup_store.get_restored_resource_list(name)
        except BackupStoreError as bse:
            logger.error("Error getting restoredResourceList: %s", bse)
            raise RestoreFinalizerError("error getting restoredResourceList") from bse

        ctx = FinalizerContext(
            restore=restore,
            kube_client=self._kube_client,
            volume_infos=volume_infos,
            restored_pvcs=get_restored_pvcs(restored_resources),
            config=self._config,
        )
        warnings, errs = ctx.execute()

        warning_count, error_count = warnings.count(), errs.count()
        restore.status.warnings = (restore.status.warnings or 0) + warning_count
        restore.status.errors = (restore.status.errors or 0) + error_count

        if not errs.is_empty():
            restore.status.phase = RestorePhase.FinalizingPartiallyFailed.value

        if warning_count > 0 or error_count > 0:
            try:
                self._update_results(backup_store, name, warnings, errs)
            except BackupStoreError as bse:
                logger.error("Error updating results: %s", bse)
                raise RestoreFinalizerError("error updating results") from bse

        final_phase = RestorePhase.Completed
        if restore.status.phase == RestorePhase.FinalizingPartiallyFailed:
            final_phase = RestorePhase.PartiallyFailed
        logger.info("Marking restore %s %s", name, final_phase.value)

        self._finish_processing(final_phase, restore, original)

    @staticmethod
    def _update_results(
        backup_store: BackupStore, name: str, new_warnings: Result, new_errs: Result
    ) -> None:
        """Merge new warnings and errors into the results stored for a restore."""
        stored = backup_store.get_restore_results(name)
        warnings = stored.get(RESTORE_RESULTS_WARNINGS_KEY) or Result()
        errs = stored.get(RESTORE_RESULTS_ERRORS_KEY) or Result()
        warnings.merge(new_warnings)
        errs.merge(new_errs)

        backup_store.put_restore_results(
            name, {RESTORE_RESULTS_WARNINGS_KEY: warnings, RESTORE_RESULTS_ERRORS_KEY: errs}
        )

    def _finish_processing(
        self, phase: RestorePhase, restore: Restore, original: Restore
    ) -> None:
        """Set the terminal phase and completion time, then patch the restore.

        Raises:
            RestoreFinalizerError: If the restore cannot be patched.
        """
        schedule = (restore.spec.scheduleName if restore.spec else None) or ""
        if phase == RestorePhase.PartiallyFailed:
            restore.status.phase = RestorePhase.PartiallyFailed.value
            self._metrics.register_restore_partial_failure(schedule)
        else:
            restore.status.phase = RestorePhase.Completed.value
            self._metrics.register_restore_success(schedule)
        restore.status.completionTimestamp = (
            self._clock().astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        )

        try:
            k8s_patch_resource(
                self._kube_client, original, restore, field_manager=self._config.field_manager
            )
        except httpx.HTTPError as ae:
            logger.error("Error updating restore's final status: %s", ae)
            raise RestoreFinalizerError("error updating restore's final status") from ae
