# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Collaborators the restore finalizer consumes from the rest of the Velero server."""

from abc import ABC, abstractmethod
from typing import Dict, List

from lightkube.generic_resource import GenericNamespacedResource

from .results import Result
from .volume import VolumeInfo


class PluginManager(ABC):
    """Owner of the plugin clients backing an object store."""

    @abstractmethod
    def cleanup_clients(self) -> None:  # pragma: no cover
        """Release every plugin client started by this manager."""
        ...


class BackupStore(ABC):
    """Accessor for the backup and restore metadata kept in a backup storage location."""

    @abstractmethod
    def get_backup_volume_infos(self, backup_name: str) -> List[VolumeInfo]:  # pragma: no cover
        """Return the volume info list recorded for a backup.

        The stored document is the JSON list read by ``parse_volume_infos``.
        """
        ...

    @abstractmethod
    def get_restored_resource_list(
        self, restore_name: str
    ) -> Dict[str, List[str]]:  # pragma: no cover
        """Return the resources restored by a restore, keyed by resource type."""
        ...

    @abstractmethod
    def get_restore_results(self, restore_name: str) -> Dict[str, Result]:  # pragma: no cover
        """Return the stored results of a restore, keyed by "warnings" and "errors".

        Each entry is decoded from its JSON form with ``Result.from_dict``.
        """
        ...

    @abstractmethod
    def put_restore_results(
        self, restore_name: str, results: Dict[str, Result]
    ) -> None:  # pragma: no cover
        """Store the results of a restore, keyed by "warnings" and "errors".

        Each entry is encoded with ``Result.to_dict``.
        """
        ...


class BackupStoreGetter(ABC):
    """Factory for the backup store of a backup storage location."""

    @abstractmethod
    def get(
        self, location: GenericNamespacedResource, plugin_manager: PluginManager
    ) -> BackupStore:  # pragma: no cover
        """Return the backup store for the given BackupStorageLocation."""
        ...


class RestoreMetrics(ABC):
    """Restore outcome counters exported by the server."""

    @abstractmethod
    def register_restore_success(self, schedule: str) -> None:  # pragma: no cover
        """Count a restore that completed successfully."""
        ...

    @abstractmethod
    def register_restore_partial_failure(self, schedule: str) -> None:  # pragma: no cover
        """Count a restore that completed with errors."""
        ...
