# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Volume information recorded by Velero at backup time."""

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class BackupMethod(str, Enum):
    """How the data of a volume was captured."""

    PodVolumeBackup = "PodVolumeBackup"
    CSISnapshot = "CSISnapshot"
    NativeSnapshot = "NativeSnapshot"


class ReclaimPolicy(str, Enum):
    """PersistentVolume reclaim policy enum."""

    Retain = "Retain"
    Delete = "Delete"
    Recycle = "Recycle"


class VolumeModel(BaseModel):
    """Base Pydantic model for the volume info document."""

    model_config = ConfigDict(validate_by_name=True, validate_by_alias=True)


class PVInfo(VolumeModel):
    """Reclaim policy and labels of the original PersistentVolume."""

    reclaim_policy: ReclaimPolicy = Field(alias="reclaimPolicy")
    labels: Dict[str, str] = Field(default_factory=dict, alias="labels")


class VolumeInfo(VolumeModel):
    """A single volume entry of a backup's volume info list."""

    backup_method: Optional[BackupMethod] = Field(None, alias="backupMethod")
    pvc_name: str = Field("", alias="pvcName")
    pvc_namespace: str = Field("", alias="pvcNamespace")
    pv_name: str = Field("", alias="pvName")
    pv_info: Optional[PVInfo] = Field(None, alias="pvInfo")

    @field_validator("backup_method", mode="before")
    @classmethod
    def blank_method(cls, value):
        """Treat an empty backup method as unset."""
        if value == "":
            return None
        return value


_volume_info_list = TypeAdapter(List[VolumeInfo])


def parse_volume_infos(data: bytes) -> List[VolumeInfo]:
    """Parse the JSON encoded volume info list stored next to a backup."""
    return _volume_info_list.validate_json(data)
