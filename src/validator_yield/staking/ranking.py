"""Ranking of validators by yield."""

from __future__ import annotations

from typing import TYPE_CHECKING

from validator_yield.errors import InvalidArgumentError


if TYPE_CHECKING:
    from collections.abc import Iterable

    from validator_yield.staking.models import ValidatorMetrics


def rank(
    metrics: Iterable[ValidatorMetrics], top_n: int | None = None
) -> list[ValidatorMetrics]:
    """Sort validators by APY, highest first.

    Equal APYs are ordered by validator address so the order is total and
    repeatable.

    Args:
        metrics: Computed metrics, e.g. everything delivered so far
        top_n: Keep only the first top_n entries, None keeps all

    Returns:
        New sorted list

    Raises:
        InvalidArgumentError: If top_n is negative
    """
    if top_n is not None and top_n < 0:
        msg = f"top_n must be >= 0, got {top_n}"
        raise InvalidArgumentError(msg)

    ranked = sorted(metrics, key=lambda m: m.validator_id)
    ranked.sort(key=lambda m: m.apy, reverse=True)
    return ranked if top_n is None else ranked[:top_n]


__all__ = ["rank"]
