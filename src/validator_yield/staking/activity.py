"""Activity of a nominator's chosen validators across eras."""

from __future__ import annotations

from typing import TYPE_CHECKING

from validator_yield.chain.queries import get_era_exposure, get_nominator_targets
from validator_yield.errors import InvalidArgumentError
from validator_yield.helpers.logging import get_logger
from validator_yield.staking.exposure import validate_era, validate_validator_id
from validator_yield.staking.models import NominatorEraActivity


if TYPE_CHECKING:
    from validator_yield.chain.queries import StorageReader


logger = get_logger(__name__)


async def check_validator_activity_across_eras(
    session: StorageReader,
    address: str,
    start_era: int,
    end_era: int,
) -> list[NominatorEraActivity]:
    """Check, era by era, whether each of a nominator's targets was backed.

    A target counts as active in an era when its exposure has a non-zero
    total stake.

    Args:
        session: Storage reader
        address: Nominator address
        start_era: First era to check
        end_era: Last era to check, inclusive

    Returns:
        One entry per (era, target), eras ascending, targets in nomination
        order. Empty if the account is not nominating.

    Raises:
        InvalidArgumentError: If an era is negative, start_era > end_era or the
            address is malformed
        httpx.HTTPError: If a query fails
    """
    validate_validator_id(address)
    validate_era(start_era)
    validate_era(end_era)
    if start_era > end_era:
        msg = f"start_era {start_era} is after end_era {end_era}"
        raise InvalidArgumentError(msg)

    targets = await get_nominator_targets(session, address)
    if not targets:
        logger.info("%s has no nomination targets", address)
        return []

    results: list[NominatorEraActivity] = []
    for era in range(start_era, end_era + 1):
        for validator_id in targets:
            exposure = await get_era_exposure(session, era, validator_id)
            results.append(
                NominatorEraActivity(
                    era=era, validator_id=validator_id, active=exposure.total > 0
                )
            )

    return results


__all__ = ["check_validator_activity_across_eras"]
