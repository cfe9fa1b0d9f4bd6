"""Pydantic models for the declared node pool configuration.

These models provide:
1. Type-safe YAML parsing with camelCase aliases
2. Field-level validation at the boundary (fail fast, fail loudly)
3. The shape that remote state is reflected back into

Cross-field invariants (autoscaling bounds, Spot-only settings) are not
checked here; see validator.py.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from typing import Annotated, Any

from azure.mgmt.core.tools import is_valid_resource_id
from pydantic import BaseModel, Field, field_validator

from .identifiers import ClusterId

# Agent pool names: lowercase alphanumeric, starting with a letter, at most 12 chars
VALID_NODE_POOL_NAME_PATTERN = r"^[a-z][a-z0-9]{0,11}$"

MAX_NODE_COUNT = 100
MAX_TAGS = 50
MAX_TAG_KEY_LENGTH = 512
MAX_TAG_VALUE_LENGTH = 256

# Spot bid price: -1 means "pay up to the on-demand price"
SPOT_PRICE_ON_DEMAND = -1.0
MIN_SPOT_PRICE = 0.00001


class OSType(str, Enum):
    """Operating system of the pool's nodes."""

    LINUX = "Linux"
    WINDOWS = "Windows"


class ScalePriority(str, Enum):
    """Scale set priority of the pool's nodes."""

    REGULAR = "Regular"
    SPOT = "Spot"


class EvictionPolicy(str, Enum):
    """What happens to Spot nodes on eviction."""

    DELETE = "Delete"
    DEALLOCATE = "Deallocate"


def _none_to_zero(v: Any) -> Any:
    return 0 if v is None else v


def _blank_to_none(v: Any) -> Any:
    if isinstance(v, str) and not v.strip():
        return None
    return v


class AutoscalingConfig(BaseModel):
    """Cluster autoscaler settings for the pool.

    A bound of 0 means "not set"; rather than 0, declare the bound as null.
    """

    model_config = {"extra": "ignore", "populate_by_name": True}

    enabled: bool = False
    min_count: Annotated[int, Field(ge=0, le=MAX_NODE_COUNT, alias="minCount")] = 0
    max_count: Annotated[int, Field(ge=0, le=MAX_NODE_COUNT, alias="maxCount")] = 0

    @field_validator("min_count", "max_count", mode="before")
    @classmethod
    def null_bound_is_unset(cls, v: Any) -> Any:
        return _none_to_zero(v)


class NodePoolConfig(BaseModel):
    """Declared configuration of a single node pool."""

    model_config = {"extra": "ignore", "populate_by_name": True}

    # Identity
    name: Annotated[str, Field(min_length=1, max_length=12)]
    cluster_id: str = Field(alias="clusterId")

    # Creation-only
    vm_size: Annotated[str, Field(min_length=1, alias="vmSize")]
    os_type: OSType = Field(OSType.LINUX, alias="osType")
    max_pods: Annotated[int | None, Field(ge=1, alias="maxPods")] = None
    node_labels: dict[str, str] = Field(default_factory=dict, alias="nodeLabels")
    node_taints: list[str] = Field(default_factory=list, alias="nodeTaints")
    os_disk_size_gb: Annotated[int | None, Field(ge=1, alias="osDiskSizeGB")] = None
    vnet_subnet_id: str | None = Field(None, alias="vnetSubnetId")
    priority: ScalePriority = ScalePriority.REGULAR
    eviction_policy: EvictionPolicy | None = Field(None, alias="evictionPolicy")
    max_bid_price: float | None = Field(None, alias="maxBidPrice")

    # Mutable
    node_count: Annotated[int, Field(ge=0, le=MAX_NODE_COUNT, alias="nodeCount")] = 0
    autoscaling: AutoscalingConfig = Field(default_factory=AutoscalingConfig)
    availability_zones: list[str] = Field(default_factory=list, alias="availabilityZones")
    enable_node_public_ip: bool = Field(False, alias="enableNodePublicIP")
    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not re.match(VALID_NODE_POOL_NAME_PATTERN, v):
            raise ValueError(
                "name must start with a lowercase letter and contain at most 12 "
                "lowercase letters and digits"
            )
        return v

    @field_validator("cluster_id")
    @classmethod
    def validate_cluster_id(cls, v: str) -> str:
        # InvalidResourceIdError is a ValueError, so pydantic reports it as a field error
        ClusterId.parse(v)
        return v

    @field_validator("node_count", mode="before")
    @classmethod
    def null_count_is_unset(cls, v: Any) -> Any:
        return _none_to_zero(v)

    @field_validator("autoscaling", mode="before")
    @classmethod
    def null_autoscaling_is_disabled(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("vnet_subnet_id", "eviction_policy", mode="before")
    @classmethod
    def blank_is_unset(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("vnet_subnet_id")
    @classmethod
    def validate_subnet_id(cls, v: str | None) -> str | None:
        if v is not None and not is_valid_resource_id(v):
            raise ValueError(f"vnetSubnetId must be an Azure resource ID: {v}")
        return v

    @field_validator("max_bid_price", mode="before")
    @classmethod
    def zero_bid_is_unset(cls, v: Any) -> Any:
        # A bid price of exactly zero cannot be expressed; it means "not set"
        if v is not None and v == 0:
            return None
        return v

    @field_validator("max_bid_price")
    @classmethod
    def validate_bid_price(cls, v: float | None) -> float | None:
        if v is not None and v != SPOT_PRICE_ON_DEMAND and v < MIN_SPOT_PRICE:
            raise ValueError(
                f"maxBidPrice must be {SPOT_PRICE_ON_DEMAND:g} or at least {MIN_SPOT_PRICE}"
            )
        return v

    @field_validator("availability_zones", "node_taints", mode="before")
    @classmethod
    def null_list_is_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("node_labels", "tags", mode="before")
    @classmethod
    def null_mapping_is_empty(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("tags")
    @classmethod
    def validate_tags(cls, v: dict[str, str]) -> dict[str, str]:
        if len(v) > MAX_TAGS:
            raise ValueError(f"a maximum of {MAX_TAGS} tags can be applied to each node pool")
        for key, value in v.items():
            if len(key) > MAX_TAG_KEY_LENGTH:
                raise ValueError(f"tag key {key!r} exceeds {MAX_TAG_KEY_LENGTH} characters")
            if len(value) > MAX_TAG_VALUE_LENGTH:
                raise ValueError(
                    f"value of tag {key!r} exceeds {MAX_TAG_VALUE_LENGTH} characters"
                )
        return v

    def to_document(self) -> dict[str, Any]:
        """Serialize using the camelCase aliases accepted on input."""
        return self.model_dump(mode="json", by_alias=True)


@dataclass(frozen=True)
class NodePoolState:
    """A node pool as last observed remotely, reflected into declared shape."""

    id: str
    config: NodePoolConfig
