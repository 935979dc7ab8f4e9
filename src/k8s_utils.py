# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Utility functions for Kubernetes resources handled by the restore finalizer."""

import logging
import time
from typing import Any, Callable, Dict, Optional, Type, TypeVar, Union

from lightkube import Client
from lightkube.core.exceptions import ApiError
from lightkube.core.resource import GlobalResource, NamespacedResource
from lightkube.types import PatchType
from tenacity import (
    RetryError,
    Retrying,
    retry_if_result,
    stop_after_attempt,
    stop_after_delay,
    wait_fixed,
)

logger = logging.getLogger(__name__)

ResourceT = TypeVar("ResourceT", bound=Union[NamespacedResource, GlobalResource])


class PollTimeoutError(Exception):
    """Raised when a polled condition is not met before the deadline."""


def k8s_get_or_none(
    kube_client: Client,
    resource_type: Type[ResourceT],
    name: str,
    namespace: Optional[str] = None,
) -> Optional[ResourceT]:
    """Get a Kubernetes resource, returning None if it does not exist.

    Args:
        kube_client (Client): The Kubernetes client used to interact with the cluster.
        resource_type (Type): The lightkube resource class to fetch.
        name (str): The name of the resource.
        namespace (Optional[str]): The namespace of the resource, for namespaced resources.

    Returns:
        The resource, or None if the API server answered 404.

    Raises:
        ApiError: If the resource cannot be retrieved for any other reason.
    """
    try:
        if namespace is not None:
            return kube_client.get(resource_type, name=name, namespace=namespace)
        return kube_client.get(resource_type, name=name)
    except ApiError as ae:
        if ae.status.code == 404:
            logger.debug("Resource %s '%s' not found", resource_type.__name__, name)
            return None
        raise ae


def k8s_merge_patch(original: Dict[str, Any], updated: Dict[str, Any]) -> Dict[str, Any]:
    """Compute the JSON merge patch (RFC 7386) turning original into updated.

    Keys removed in updated are set to None, nested mappings are diffed recursively
    and any other changed value (lists included) is replaced as a whole.
    """
    patch: Dict[str, Any] = {}
    for key in original:
        if key not in updated:
            patch[key] = None
    for key, value in updated.items():
        if key not in original:
            patch[key] = value
            continue
        old = original[key]
        if isinstance(old, dict) and isinstance(value, dict):
            nested = k8s_merge_patch(old, value)
            if nested:
                patch[key] = nested
        elif old != value:
            patch[key] = value
    return patch


def k8s_patch_resource(
    kube_client: Client,
    original: Union[NamespacedResource, GlobalResource],
    updated: Union[NamespacedResource, GlobalResource],
    field_manager: Optional[str] = None,
) -> None:
    """Patch a resource with the difference between its original and updated copies.

    Only the fields changed between the two copies are submitted, so concurrent
    changes to other fields of the live object are preserved.

    Args:
        kube_client (Client): The Kubernetes client used to interact with the cluster.
        original: The resource as it was read from the cluster.
        updated: A modified copy of original.
        field_manager (Optional[str]): The field manager recorded for the patch.

    Raises:
        ApiError: If the patch is rejected by the API server.
    """
    patch = k8s_merge_patch(original.to_dict(), updated.to_dict())
    metadata = original.metadata
    if not patch:
        logger.debug("Resource %s '%s' is up to date", type(original).__name__, metadata.name)
        return

    try:
        kube_client.patch(
            type(original),
            metadata.name,
            patch,
            namespace=metadata.namespace,
            patch_type=PatchType.MERGE,
            field_manager=field_manager,
        )
    except ApiError as ae:
        logger.error(
            "Failed to patch %s '%s' resource: %s", type(original).__name__, metadata.name, ae
        )
        raise ae


def k8s_poll_until(
    condition: Callable[[], bool],
    *,
    interval: float,
    timeout: float,
    sleep: Callable[[float], None] = time.sleep,
) -> None:
    """Evaluate condition until it returns True or the deadline elapses.

    The first evaluation happens immediately. A condition returning False is retried
    after interval seconds, an exception raised by the condition is propagated
    right away without further attempts.

    Args:
        condition (Callable[[], bool]): The condition to evaluate.
        interval (float): Delay between evaluations in seconds.
        timeout (float): Deadline in seconds, measured from the first evaluation.
        sleep (Callable[[float], None]): The function used to wait between evaluations.

    Raises:
        PollTimeoutError: If the condition is still False when the deadline elapses.
    """
    attempts = int(timeout // interval) + 1

    try:
        for attempt in Retrying(
            stop=(stop_after_attempt(attempts) | stop_after_delay(timeout)),
            wait=wait_fixed(interval),
            retry=retry_if_result(lambda done: not done),
            sleep=sleep,
        ):
            with attempt:
                done = condition()
            if not attempt.retry_state.outcome.failed:  # type: ignore
                attempt.retry_state.set_result(done)
    except RetryError as re:
        raise PollTimeoutError("timed out waiting for the condition") from re
