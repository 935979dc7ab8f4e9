# Copyright 2025 Canonical Ltd.
# See LICENSE file for licensing details.

"""Warnings and errors collected while restoring, split by scope."""

from dataclasses import dataclass, field
from typing import Any, Dict, List


@dataclass
class Result:
    """A set of messages grouped into the Velero, cluster and namespace scopes.

    Merging two results concatenates the messages of every scope, so the count of a
    merged result is always the sum of the counts of its parts.
    """

    velero: List[str] = field(default_factory=list)
    cluster: List[str] = field(default_factory=list)
    namespaces: Dict[str, List[str]] = field(default_factory=dict)

    def add(self, namespace: str, message: Any) -> None:
        """Record a message for a namespace, or for the cluster if namespace is empty."""
        if not namespace:
            self.cluster.append(str(message))
            return
        self.namespaces.setdefault(namespace, []).append(str(message))

    def merge(self, other: "Result") -> None:
        """Append all messages of other to this result."""
        self.velero.extend(other.velero)
        self.cluster.extend(other.cluster)
        for namespace, messages in other.namespaces.items():
            self.namespaces.setdefault(namespace, []).extend(messages)

    def count(self) -> int:
        """Return the number of messages across all scopes."""
        return (
            len(self.velero)
            + len(self.cluster)
            + sum(len(messages) for messages in self.namespaces.values())
        )

    def is_empty(self) -> bool:
        """Return True if no message has been recorded in any scope."""
        return self.count() == 0

    def to_dict(self) -> Dict[str, Any]:
        """Return the result in the JSON layout used by Velero, omitting empty scopes."""
        data: Dict[str, Any] = {}
        if self.velero:
            data["velero"] = list(self.velero)
        if self.cluster:
            data["cluster"] = list(self.cluster)
        if self.namespaces:
            data["namespaces"] = {ns: list(msgs) for ns, msgs in self.namespaces.items()}
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Result":
        """Build a result from its Velero JSON layout."""
        return cls(
            velero=list(data.get("velero") or []),
            cluster=list(data.get("cluster") or []),
            namespaces={ns: list(msgs) for ns, msgs in (data.get("namespaces") or {}).items()},
        )
