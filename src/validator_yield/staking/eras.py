"""Selection of the era to analyze."""

from __future__ import annotations

from typing import TYPE_CHECKING

from validator_yield.chain.queries import (
    get_active_era,
    get_current_era,
    get_era_reward_points,
)
from validator_yield.errors import InvalidArgumentError
from validator_yield.helpers.constants import MAX_ERA_LOOKBACK
from validator_yield.helpers.logging import get_logger


if TYPE_CHECKING:
    from validator_yield.chain.queries import StorageReader


logger = get_logger(__name__)


async def last_completed_era(session: StorageReader) -> int | None:
    """Get the era before the one currently being rewarded.

    The active era is still accumulating points and its payout is only
    recorded when it ends. Falls back to the planned era when the chain
    reports no active era.

    Args:
        session: Storage reader

    Returns:
        Index of the last finished era, None if no era has finished yet
    """
    era = await get_active_era(session)
    if era is None:
        era = await get_current_era(session)
    if era is None or era < 1:
        return None
    return era - 1


async def last_rewarded_era(
    session: StorageReader, *, max_lookback: int | None = MAX_ERA_LOOKBACK
) -> int:
    """Find the most recent completed era that distributed reward points.

    Walks backward from the last completed era while the era's point total
    is zero. Era 0 is returned without being checked.

    Args:
        session: Storage reader
        max_lookback: Maximum number of backward steps, None for no limit

    Returns:
        The first era with a non-zero point total, or the era where the scan
        stopped (0, or the lookback limit)

    Raises:
        InvalidArgumentError: If max_lookback is negative
        httpx.HTTPError: If a query fails
    """
    if max_lookback is not None and max_lookback < 0:
        msg = f"max_lookback must be >= 0, got {max_lookback}"
        raise InvalidArgumentError(msg)

    completed_era = await last_completed_era(session)
    if completed_era is None:
        logger.info("No era completed yet, using era 0")
        return 0

    era = completed_era
    steps = 0
    while era > 0:
        tally = await get_era_reward_points(session, era)
        if tally.total > 0:
            logger.info(
                "Last rewarded era: %d (last completed era %d)", era, completed_era
            )
            return era
        if max_lookback is not None and steps >= max_lookback:
            logger.warning(
                "No rewarded era within %d eras of era %d, stopping at era %d",
                max_lookback,
                completed_era,
                era,
            )
            return era
        era -= 1
        steps += 1

    logger.info("No rewarded era found back to genesis, using era 0")
    return 0


__all__ = ["last_completed_era", "last_rewarded_era"]
