"""Cross-field invariant checks for node pool configuration.

The rule functions here are pure: no I/O, no mutation. They run pre-flight on
every create and update, and the autoscaling rule runs a second time inside
the delta builder against the merged update payload.

Rules, in reporting order:
1. Autoscaling disabled: min_count and max_count must both be unset.
2. Autoscaling enabled: min_count and max_count must be set, min <= max.
3. Autoscaling disabled: node_count must be set.
4. eviction_policy and max_bid_price require Spot priority.
"""

from __future__ import annotations

from .errors import ValidationError
from .models import EvictionPolicy, NodePoolConfig, ScalePriority


def autoscaling_violations(
    enabled: bool, min_count: int | None, max_count: int | None
) -> list[str]:
    """Check the enabled/min/max triple. A bound of None or 0 counts as unset."""
    min_count = min_count or 0
    max_count = max_count or 0

    if not enabled:
        if min_count > 0 or max_count > 0:
            return [
                "`max_count` and `min_count` must be set to `null` when "
                "`enable_auto_scaling` is set to `false`"
            ]
        return []

    violations: list[str] = []
    if max_count <= 0:
        violations.append(
            "`max_count` must be configured when `enable_auto_scaling` is set to `true`"
        )
    if min_count <= 0:
        violations.append(
            "`min_count` must be configured when `enable_auto_scaling` is set to `true`"
        )
    if min_count > 0 and max_count > 0 and min_count > max_count:
        violations.append("`max_count` must be >= `min_count`")
    return violations


def node_count_violations(enabled: bool, node_count: int | None) -> list[str]:
    """Without the autoscaler, nothing else decides how many nodes the pool runs."""
    if enabled or node_count:
        return []
    return ["`node_count` must be configured when `enable_auto_scaling` is set to `false`"]


def priority_violations(
    priority: ScalePriority,
    eviction_policy: EvictionPolicy | None,
    max_bid_price: float | None,
) -> list[str]:
    """Check that Spot-only settings are only present on Spot pools."""
    if priority == ScalePriority.SPOT:
        return []

    violations: list[str] = []
    if max_bid_price:
        violations.append("`priority` must be set to `Spot` if `max_bid_price` is specified")
    if eviction_policy is not None:
        violations.append("`priority` must be set to `Spot` if `eviction_policy` is specified")
    return violations


def collect_violations(cfg: NodePoolConfig) -> list[str]:
    """Return every invariant violated by cfg, in rule order."""
    violations = autoscaling_violations(
        cfg.autoscaling.enabled,
        cfg.autoscaling.min_count,
        cfg.autoscaling.max_count,
    )
    violations.extend(node_count_violations(cfg.autoscaling.enabled, cfg.node_count))
    violations.extend(priority_violations(cfg.priority, cfg.eviction_policy, cfg.max_bid_price))
    return violations


def validate(cfg: NodePoolConfig) -> None:
    """Validate cfg against all cross-field invariants.

    Raises:
        ValidationError: Listing every violated invariant.
    """
    violations = collect_violations(cfg)
    if violations:
        raise ValidationError(violations, subject=f"configuration for node pool {cfg.name!r}")
