"""Tests for cross-field invariant validation."""

from typing import Any

import pytest

from nodepool.errors import ValidationError
from nodepool.models import EvictionPolicy, NodePoolConfig, ScalePriority
from nodepool.validator import (
    autoscaling_violations,
    collect_violations,
    node_count_violations,
    priority_violations,
    validate,
)

CLUSTER_ID = (
    "/subscriptions/00000000-0000-0000-0000-000000000001/resourceGroups/rg-aks"
    "/providers/Microsoft.ContainerService/managedClusters/aks-prod"
)


def _config(**overrides: Any) -> NodePoolConfig:
    document: dict[str, Any] = {
        "name": "workers",
        "clusterId": CLUSTER_ID,
        "vmSize": "Standard_DS2_v2",
        "nodeCount": 1,
    }
    document.update(overrides)
    return NodePoolConfig.model_validate(document)


class TestAutoscalingRule:
    """Tests for the enabled/min/max rule."""

    def test_disabled_without_bounds_is_valid(self) -> None:
        assert autoscaling_violations(False, None, None) == []
        assert autoscaling_violations(False, 0, 0) == []

    @pytest.mark.parametrize(("min_count", "max_count"), [(1, 0), (0, 5), (1, 5)])
    def test_disabled_with_any_bound_is_rejected(self, min_count: int, max_count: int) -> None:
        violations = autoscaling_violations(False, min_count, max_count)

        assert len(violations) == 1
        assert "must be set to `null`" in violations[0]

    def test_enabled_requires_both_bounds(self) -> None:
        violations = autoscaling_violations(True, None, None)

        assert violations == [
            "`max_count` must be configured when `enable_auto_scaling` is set to `true`",
            "`min_count` must be configured when `enable_auto_scaling` is set to `true`",
        ]

    def test_enabled_requires_max(self) -> None:
        assert autoscaling_violations(True, 2, 0) == [
            "`max_count` must be configured when `enable_auto_scaling` is set to `true`"
        ]

    def test_min_equal_max_is_legal(self) -> None:
        assert autoscaling_violations(True, 3, 3) == []

    def test_min_greater_than_max_is_illegal(self) -> None:
        assert autoscaling_violations(True, 5, 3) == ["`max_count` must be >= `min_count`"]


class TestNodeCountRule:
    """Tests for the node count rule."""

    def test_disabled_autoscaling_requires_count(self) -> None:
        assert node_count_violations(False, 0) == [
            "`node_count` must be configured when `enable_auto_scaling` is set to `false`"
        ]

    def test_disabled_autoscaling_with_count_is_valid(self) -> None:
        assert node_count_violations(False, 3) == []

    def test_autoscaled_pool_may_leave_count_unset(self) -> None:
        assert node_count_violations(True, 0) == []


class TestPriorityRule:
    """Tests for the Spot-only settings rule."""

    def test_spot_accepts_eviction_and_bid(self) -> None:
        assert priority_violations(ScalePriority.SPOT, EvictionPolicy.DELETE, 0.5) == []

    def test_regular_rejects_bid(self) -> None:
        assert priority_violations(ScalePriority.REGULAR, None, 0.5) == [
            "`priority` must be set to `Spot` if `max_bid_price` is specified"
        ]

    def test_regular_rejects_eviction_policy(self) -> None:
        assert priority_violations(ScalePriority.REGULAR, EvictionPolicy.DEALLOCATE, None) == [
            "`priority` must be set to `Spot` if `eviction_policy` is specified"
        ]

    def test_regular_without_spot_settings_is_valid(self) -> None:
        assert priority_violations(ScalePriority.REGULAR, None, None) == []


class TestValidate:
    """Tests for whole-configuration validation."""

    def test_valid_config_passes(self) -> None:
        validate(_config(autoscaling={"enabled": True, "minCount": 1, "maxCount": 3}))

    def test_disabled_autoscaling_with_bounds_fails(self) -> None:
        """Autoscaling off with populated bounds is rejected before any remote call."""
        cfg = _config(autoscaling={"enabled": False, "minCount": 1, "maxCount": 3})

        with pytest.raises(ValidationError) as exc_info:
            validate(cfg)

        assert len(exc_info.value.violations) == 1
        assert "`max_count` and `min_count` must be set to `null`" in str(exc_info.value)

    def test_enabled_autoscaling_with_inverted_bounds_fails(self) -> None:
        cfg = _config(autoscaling={"enabled": True, "minCount": 5, "maxCount": 3})

        with pytest.raises(ValidationError, match=">= `min_count`"):
            validate(cfg)

    def test_missing_node_count_fails(self) -> None:
        """A fixed-size pool without a count would be created with zero nodes."""
        with pytest.raises(ValidationError, match="`node_count` must be configured"):
            validate(_config(nodeCount=None))

    def test_all_violations_combined(self) -> None:
        """Every broken rule is reported in a single error."""
        cfg = _config(
            autoscaling={"enabled": True},
            evictionPolicy="Delete",
            maxBidPrice=0.5,
        )

        with pytest.raises(ValidationError) as exc_info:
            validate(cfg)

        assert exc_info.value.violations == collect_violations(cfg)
        assert len(exc_info.value.violations) == 4
        assert "'workers'" in str(exc_info.value)

    def test_validation_is_not_retryable(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            validate(_config(maxBidPrice=0.5))

        assert exc_info.value.retryable is False

    def test_validate_does_not_mutate(self) -> None:
        cfg = _config(autoscaling={"enabled": True, "minCount": 1, "maxCount": 3}, tags={"a": "1"})
        before = cfg.model_dump()

        validate(cfg)

        assert cfg.model_dump() == before
