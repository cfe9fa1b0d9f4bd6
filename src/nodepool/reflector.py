"""Reflect a remote agent pool back into the declared configuration shape.

Counts and flags that ARM leaves null become zero / False, collections become
empty. The properties whose absence is meaningful (max pods, OS disk size,
subnet, eviction policy, bid price) stay None.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, TypeVar

from azure.mgmt.containerservice.models import AgentPool

from .models import (
    AutoscalingConfig,
    EvictionPolicy,
    NodePoolConfig,
    OSType,
    ScalePriority,
)


E = TypeVar("E", bound=Enum)


def _coerce(enum_cls: type[E], value: Any, default: E | None = None) -> E | None:
    """Map an SDK enum or plain string from ARM onto one of our enums.

    ARM does not preserve the casing it was sent, so matching ignores case.
    """
    if value is None or value == "":
        return default
    raw = str(getattr(value, "value", value)).lower()
    for member in enum_cls:
        if member.value.lower() == raw:
            return member
    raise ValueError(f"Unexpected {enum_cls.__name__} value from Azure: {value!r}")


def reflect(pool: AgentPool, *, name: str, cluster_id: str) -> NodePoolConfig:
    """Map a remote agent pool into a NodePoolConfig."""
    return NodePoolConfig(
        name=name,
        cluster_id=cluster_id,
        vm_size=pool.vm_size,
        os_type=_coerce(OSType, pool.os_type, OSType.LINUX),
        node_count=pool.count or 0,
        autoscaling=AutoscalingConfig(
            enabled=bool(pool.enable_auto_scaling),
            min_count=pool.min_count or 0,
            max_count=pool.max_count or 0,
        ),
        availability_zones=list(pool.availability_zones or []),
        enable_node_public_ip=bool(pool.enable_node_public_ip),
        max_pods=pool.max_pods or None,
        node_labels=dict(pool.node_labels or {}),
        node_taints=list(pool.node_taints or []),
        os_disk_size_gb=pool.os_disk_size_gb or None,
        vnet_subnet_id=pool.vnet_subnet_id or None,
        priority=_coerce(ScalePriority, pool.scale_set_priority, ScalePriority.REGULAR),
        eviction_policy=_coerce(EvictionPolicy, pool.scale_set_eviction_policy),
        max_bid_price=pool.spot_max_price,
        tags=dict(pool.tags or {}),
    )
