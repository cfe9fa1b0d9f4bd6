"""Composite resource identifiers for managed clusters and their node pools.

Azure resource IDs follow the pattern:
/subscriptions/{sub}/resourceGroups/{rg}/providers/Microsoft.ContainerService
    /managedClusters/{cluster}[/agentPools/{pool}]

Provider namespace and type segments are matched case-insensitively, since
ARM itself echoes them back in inconsistent casing.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from azure.mgmt.core.tools import is_valid_resource_id, parse_resource_id, resource_id

from .errors import InvalidResourceIdError

CONTAINER_SERVICE_NAMESPACE = "Microsoft.ContainerService"
MANAGED_CLUSTERS_TYPE = "managedClusters"
AGENT_POOLS_TYPE = "agentPools"


def _parse(raw_id: str, expected: str) -> dict[str, Any]:
    if not raw_id or not is_valid_resource_id(raw_id):
        raise InvalidResourceIdError(f"Invalid {expected} ID {raw_id!r}: not an Azure resource ID")

    parts = parse_resource_id(raw_id)

    missing = [key for key in ("subscription", "resource_group", "name") if not parts.get(key)]
    if missing:
        raise InvalidResourceIdError(
            f"Invalid {expected} ID {raw_id!r}: missing {', '.join(missing)}"
        )

    namespace = (parts.get("namespace") or "").lower()
    resource_type = (parts.get("type") or "").lower()
    if (
        namespace != CONTAINER_SERVICE_NAMESPACE.lower()
        or resource_type != MANAGED_CLUSTERS_TYPE.lower()
    ):
        raise InvalidResourceIdError(
            f"Invalid {expected} ID {raw_id!r}: expected a "
            f"{CONTAINER_SERVICE_NAMESPACE}/{MANAGED_CLUSTERS_TYPE} resource"
        )

    return parts


@dataclass(frozen=True)
class ClusterId:
    """Identity of a managed Kubernetes cluster."""

    subscription_id: str
    resource_group: str
    name: str

    @classmethod
    def parse(cls, raw_id: str) -> ClusterId:
        """Parse a managed cluster resource ID.

        Raises:
            InvalidResourceIdError: If the ID is not a managed cluster ID.
        """
        parts = _parse(raw_id, "Kubernetes Cluster")
        if parts.get("child_type_1"):
            raise InvalidResourceIdError(
                f"Invalid Kubernetes Cluster ID {raw_id!r}: unexpected child resource"
            )
        return cls(
            subscription_id=parts["subscription"],
            resource_group=parts["resource_group"],
            name=parts["name"],
        )

    @property
    def id(self) -> str:
        return resource_id(
            subscription=self.subscription_id,
            resource_group=self.resource_group,
            namespace=CONTAINER_SERVICE_NAMESPACE,
            type=MANAGED_CLUSTERS_TYPE,
            name=self.name,
        )

    def describe(self) -> str:
        return f"Kubernetes Cluster {self.name!r} (Resource Group {self.resource_group!r})"

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class NodePoolId:
    """Identity of a node pool: (resource group, cluster name, pool name)."""

    subscription_id: str
    resource_group: str
    cluster_name: str
    name: str

    @classmethod
    def parse(cls, raw_id: str) -> NodePoolId:
        """Parse a node pool resource ID.

        Raises:
            InvalidResourceIdError: If the ID is not a node pool ID.
        """
        parts = _parse(raw_id, "Node Pool")
        child_type = (parts.get("child_type_1") or "").lower()
        child_name = parts.get("child_name_1")
        if child_type != AGENT_POOLS_TYPE.lower() or not child_name:
            raise InvalidResourceIdError(
                f"Invalid Node Pool ID {raw_id!r}: expected an {AGENT_POOLS_TYPE} child resource"
            )
        if parts.get("child_type_2"):
            raise InvalidResourceIdError(
                f"Invalid Node Pool ID {raw_id!r}: unexpected nested child resource"
            )
        return cls(
            subscription_id=parts["subscription"],
            resource_group=parts["resource_group"],
            cluster_name=parts["name"],
            name=child_name,
        )

    @classmethod
    def for_cluster(cls, cluster: ClusterId, name: str) -> NodePoolId:
        return cls(
            subscription_id=cluster.subscription_id,
            resource_group=cluster.resource_group,
            cluster_name=cluster.name,
            name=name,
        )

    @property
    def cluster(self) -> ClusterId:
        return ClusterId(
            subscription_id=self.subscription_id,
            resource_group=self.resource_group,
            name=self.cluster_name,
        )

    @property
    def id(self) -> str:
        return resource_id(
            subscription=self.subscription_id,
            resource_group=self.resource_group,
            namespace=CONTAINER_SERVICE_NAMESPACE,
            type=MANAGED_CLUSTERS_TYPE,
            name=self.cluster_name,
            child_type_1=AGENT_POOLS_TYPE,
            child_name_1=self.name,
        )

    def describe(self) -> str:
        """Human-readable description used in error messages."""
        return (
            f"Node Pool {self.name!r} (Kubernetes Cluster {self.cluster_name!r} / "
            f"Resource Group {self.resource_group!r})"
        )

    def __str__(self) -> str:
        return self.id
