"""Retrieval of the raw chain facts behind one validator's era reward."""

from __future__ import annotations

import re

from typing import TYPE_CHECKING, Any

import asyncio

from validator_yield.chain.queries import (
    get_era_exposure,
    get_era_reward_points,
    get_era_validator_prefs,
    get_era_validator_reward,
)
from validator_yield.errors import FetchError, InvalidArgumentError
from validator_yield.staking.models import EraTotals, RawFacts


if TYPE_CHECKING:
    from collections.abc import Awaitable

    from validator_yield.chain.queries import StorageReader


# SS58 addresses are base58 (no 0, O, I or l)
VALIDATOR_ID_PATTERN = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{40,50}$")


def validate_era(era: int) -> int:
    """Reject era indexes that cannot exist.

    Raises:
        InvalidArgumentError: If era is not a non-negative integer
    """
    if isinstance(era, bool) or not isinstance(era, int) or era < 0:
        msg = f"Invalid era index: {era!r} (must be >= 0)"
        raise InvalidArgumentError(msg)
    return era


def validate_validator_id(validator_id: str) -> str:
    """Reject strings that are not SS58 addresses.

    Raises:
        InvalidArgumentError: If validator_id is malformed
    """
    if not isinstance(validator_id, str) or not VALIDATOR_ID_PATTERN.match(
        validator_id
    ):
        msg = f"Invalid validator id: {validator_id!r}"
        raise InvalidArgumentError(msg)
    return validator_id


async def _gather_settled(*queries: Awaitable[Any]) -> list[Any]:
    # Let every query settle before surfacing the first failure
    results = await asyncio.gather(*queries, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


async def fetch_era_totals(session: StorageReader, era: int) -> EraTotals:
    """Fetch the era payout and reward point tally.

    Args:
        session: Storage reader
        era: Era index

    Returns:
        EraTotals shared by all validators of the era

    Raises:
        InvalidArgumentError: If era is negative
        httpx.HTTPError: If a query fails
    """
    validate_era(era)
    payout, reward_points = await _gather_settled(
        get_era_validator_reward(session, era),
        get_era_reward_points(session, era),
    )
    return EraTotals(era=era, payout=payout, reward_points=reward_points)


async def fetch_raw_facts(
    session: StorageReader,
    era: int,
    validator_id: str,
    *,
    era_totals: EraTotals | None = None,
) -> RawFacts:
    """Fetch payout, points, commission and exposure for one validator.

    Missing commission or exposure records count as zero commission and zero
    stake. No retries happen here.

    Args:
        session: Storage reader
        era: Era index
        validator_id: Validator address
        era_totals: Era-wide facts fetched beforehand, queried when omitted

    Returns:
        Validated RawFacts

    Raises:
        FetchError: If the input is invalid or any query fails, times out or
            returns invalid data
    """
    try:
        validate_era(era)
        validate_validator_id(validator_id)
        if era_totals is not None and era_totals.era != era:
            msg = f"Era totals are for era {era_totals.era}, not {era}"
            raise InvalidArgumentError(msg)

        queries: list[Awaitable[Any]] = [
            get_era_validator_prefs(session, era, validator_id),
            get_era_exposure(session, era, validator_id),
        ]
        if era_totals is None:
            queries.append(fetch_era_totals(session, era))

        prefs, exposure, *fetched_totals = await _gather_settled(*queries)
        totals: EraTotals = era_totals or fetched_totals[0]

        return RawFacts(
            validator_id=validator_id,
            era=era,
            payout=totals.payout,
            reward_points=totals.reward_points.points_for(validator_id),
            total_reward_points=totals.reward_points.total,
            commission=prefs.commission,
            total_stake=exposure.total,
            own_stake=exposure.own,
            nominator_count=exposure.nominator_count,
        )
    except Exception as e:
        raise FetchError(str(validator_id), era, e) from e


__all__ = [
    "VALIDATOR_ID_PATTERN",
    "fetch_era_totals",
    "fetch_raw_facts",
    "validate_era",
    "validate_validator_id",
]
