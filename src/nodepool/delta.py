"""Minimal-delta update payloads for existing node pools.

The update request is the pool exactly as ARM returned it, with only the
mutable fields whose declared value changed written over it. Everything else,
including server-computed values, is sent back untouched.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from azure.mgmt.containerservice.models import AgentPool

from .errors import ValidationError
from .identifiers import ClusterId
from .models import NodePoolConfig
from .reflector import reflect
from .validator import autoscaling_violations

logger = logging.getLogger(__name__)

# Fields that can only be set at creation; a change requires a new pool
ALWAYS_IMMUTABLE_FIELDS = ("vm_size", "os_type", "priority")

# Creation-only fields ARM may fill in itself; only a declared value is compared
DECLARED_IMMUTABLE_FIELDS = (
    "eviction_policy",
    "max_bid_price",
    "vnet_subnet_id",
    "max_pods",
    "os_disk_size_gb",
    "node_labels",
    "node_taints",
)


@dataclass
class NodePoolDelta:
    """Result of comparing previously declared and desired configuration.

    Attributes:
        payload: The existing pool with changed fields applied, ready to submit.
        changed_fields: Names of the fields written, in evaluation order.
    """

    payload: AgentPool
    changed_fields: list[str] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changed_fields)


def _is_declared(value: Any) -> bool:
    return value is not None and value != {} and value != []


def _same_value(name: str, current: Any, wanted: Any) -> bool:
    # ARM echoes resource IDs with its own casing
    if name == "vnet_subnet_id" and isinstance(current, str) and isinstance(wanted, str):
        return current.lower() == wanted.lower()
    return current == wanted


def _immutable_violations(current: NodePoolConfig, desired: NodePoolConfig) -> list[str]:
    violations: list[str] = []

    for name in ALWAYS_IMMUTABLE_FIELDS:
        if getattr(desired, name) != getattr(current, name):
            violations.append(
                f"`{name}` cannot be changed on an existing node pool "
                f"({getattr(current, name)!r} -> {getattr(desired, name)!r})"
            )

    for name in DECLARED_IMMUTABLE_FIELDS:
        wanted = getattr(desired, name)
        if _is_declared(wanted) and not _same_value(name, getattr(current, name), wanted):
            violations.append(
                f"`{name}` cannot be changed on an existing node pool "
                f"({getattr(current, name)!r} -> {wanted!r})"
            )

    return violations


def _identity_violations(previous: NodePoolConfig, desired: NodePoolConfig) -> list[str]:
    violations: list[str] = []
    if desired.name != previous.name:
        violations.append(
            f"`name` cannot be changed on an existing node pool "
            f"({previous.name!r} -> {desired.name!r})"
        )
    if ClusterId.parse(desired.cluster_id).id.lower() != ClusterId.parse(
        previous.cluster_id
    ).id.lower():
        violations.append(
            "`cluster_id` cannot be changed on an existing node pool "
            f"({previous.cluster_id!r} -> {desired.cluster_id!r})"
        )
    return violations


def build_update_payload(
    existing: AgentPool,
    previous: NodePoolConfig,
    desired: NodePoolConfig,
) -> NodePoolDelta:
    """Build the update request for an existing pool.

    Args:
        existing: The pool as currently returned by ARM.
        previous: The configuration declared at the last successful apply.
        desired: The configuration being applied now.

    Raises:
        ValidationError: If desired changes an immutable field, or the merged
            autoscaling settings are inconsistent.
    """
    violations = _identity_violations(previous, desired)
    current = reflect(existing, name=desired.name, cluster_id=desired.cluster_id)
    violations.extend(_immutable_violations(current, desired))
    if violations:
        raise ValidationError(violations, subject=f"update of node pool {desired.name!r}")

    payload = copy.deepcopy(existing)
    changed: list[str] = []

    if set(desired.availability_zones) != set(previous.availability_zones):
        payload.availability_zones = list(desired.availability_zones)
        changed.append("availability_zones")

    if desired.autoscaling.enabled != previous.autoscaling.enabled:
        payload.enable_auto_scaling = desired.autoscaling.enabled
        changed.append("enable_auto_scaling")

    if desired.enable_node_public_ip != previous.enable_node_public_ip:
        payload.enable_node_public_ip = desired.enable_node_public_ip
        changed.append("enable_node_public_ip")

    if desired.autoscaling.max_count != previous.autoscaling.max_count:
        payload.max_count = desired.autoscaling.max_count or None
        changed.append("max_count")

    if desired.autoscaling.min_count != previous.autoscaling.min_count:
        payload.min_count = desired.autoscaling.min_count or None
        changed.append("min_count")

    # A count of 0 is undeclared: the server or the autoscaler keeps its value
    if desired.node_count and desired.node_count != previous.node_count:
        payload.count = desired.node_count
        changed.append("node_count")

    if desired.tags != previous.tags:
        payload.tags = dict(desired.tags)
        changed.append("tags")

    enabled = bool(payload.enable_auto_scaling)
    if not enabled and (payload.min_count or payload.max_count):
        # ARM keeps echoing old bounds after autoscaling is switched off
        logger.debug(
            "Clearing stale autoscaling bounds",
            extra={
                "node_pool": desired.name,
                "min_count": payload.min_count,
                "max_count": payload.max_count,
            },
        )
        payload.min_count = None
        payload.max_count = None

    merged = autoscaling_violations(enabled, payload.min_count, payload.max_count)
    if merged:
        raise ValidationError(merged, subject=f"update of node pool {desired.name!r}")

    return NodePoolDelta(payload=payload, changed_fields=changed)
