# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Configuration for the restore finalizer."""

from typing import Any, Dict

from pydantic import BaseModel, ValidationError, field_validator

from constants import (
    PV_PATCH_MAX_CONCURRENCY,
    PV_PATCH_MAXIMUM_DURATION,
    PV_PATCH_POLL_INTERVAL,
    VELERO_FIELD_MANAGER,
    VELERO_NAMESPACE,
)


class FinalizerConfigError(Exception):
    """Raised when the finalizer config is invalid."""


class FinalizerConfig(BaseModel):
    """Manager for the structured configuration."""

    namespace: str = VELERO_NAMESPACE
    field_manager: str = VELERO_FIELD_MANAGER
    pv_patch_poll_interval: float = PV_PATCH_POLL_INTERVAL
    pv_patch_timeout: float = PV_PATCH_MAXIMUM_DURATION
    pv_patch_max_concurrency: int = PV_PATCH_MAX_CONCURRENCY

    @field_validator("*", mode="before")
    @classmethod
    def blank_string(cls, value):
        """Convert empty strings to None."""
        if value == "":
            return None
        return value

    @field_validator("pv_patch_poll_interval", "pv_patch_timeout", "pv_patch_max_concurrency")
    @classmethod
    def positive(cls, value):
        """Reject zero and negative durations and pool sizes."""
        if value <= 0:
            raise ValueError("must be greater than 0")
        return value

    @classmethod
    def verror_to_str(cls, ve: ValidationError) -> str:
        """Convert a Pydantic ValidationError to a string."""
        error_messages = []
        for error in ve.errors():
            field = ".".join(map(str, error["loc"]))
            message = error["msg"].replace("Field ", "")
            error_messages.append(f"'{field}' {message}")
        return f"{cls.__name__} errors: " + "; ".join(error_messages)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FinalizerConfig":
        """Build the config from a mapping, raising FinalizerConfigError on invalid input."""
        try:
            return cls(**data)
        except ValidationError as ve:
            raise FinalizerConfigError(cls.verror_to_str(ve)) from ve
