"""Translate a declared configuration into an agent pool create request.

ARM distinguishes "not specified" from "explicitly zero" for several agent
pool properties (max pods, OS disk size, subnet, eviction policy, bid price),
so unset values are omitted from the request instead of being sent as
empty or zero.
"""

from __future__ import annotations

from azure.mgmt.containerservice.models import AgentPool, AgentPoolType

from .models import NodePoolConfig
from .validator import validate

# Only scale-set backed pools can be attached to an existing cluster
NODE_POOL_TYPE = AgentPoolType.VIRTUAL_MACHINE_SCALE_SETS


def initial_node_count(cfg: NodePoolConfig) -> int:
    """Node count sent at creation.

    ARM requires a count on create even for autoscaled pools; an autoscaled
    pool that leaves node_count unset starts at its minimum.
    """
    if cfg.autoscaling.enabled and cfg.node_count == 0:
        return cfg.autoscaling.min_count
    return cfg.node_count


def build_create_payload(cfg: NodePoolConfig) -> AgentPool:
    """Build the AgentPool request body for creating cfg.

    Raises:
        ValidationError: If cfg violates a cross-field invariant.
    """
    validate(cfg)

    pool = AgentPool(
        count=initial_node_count(cfg),
        vm_size=cfg.vm_size,
        os_type=cfg.os_type.value,
        enable_auto_scaling=cfg.autoscaling.enabled,
        enable_node_public_ip=cfg.enable_node_public_ip,
        scale_set_priority=cfg.priority.value,
        type_properties_type=NODE_POOL_TYPE,
    )

    if cfg.autoscaling.enabled:
        pool.min_count = cfg.autoscaling.min_count
        pool.max_count = cfg.autoscaling.max_count

    if cfg.availability_zones:
        pool.availability_zones = list(cfg.availability_zones)

    if cfg.max_pods is not None:
        pool.max_pods = cfg.max_pods

    if cfg.node_labels:
        pool.node_labels = dict(cfg.node_labels)

    if cfg.node_taints:
        pool.node_taints = list(cfg.node_taints)

    if cfg.os_disk_size_gb is not None:
        pool.os_disk_size_gb = cfg.os_disk_size_gb

    if cfg.vnet_subnet_id:
        pool.vnet_subnet_id = cfg.vnet_subnet_id

    if cfg.eviction_policy is not None:
        pool.scale_set_eviction_policy = cfg.eviction_policy.value

    if cfg.max_bid_price:
        pool.spot_max_price = cfg.max_bid_price

    if cfg.tags:
        pool.tags = dict(cfg.tags)

    return pool
