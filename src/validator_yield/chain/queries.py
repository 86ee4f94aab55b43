"""Typed staking storage queries.

Every function takes the session explicitly and turns the raw storage value
into a validated model. Absent optional records map to their zero value here,
so callers never probe raw JSON.
"""

from typing import Any, Protocol

from validator_yield.chain.models import Exposure, RewardPointTally, ValidatorPrefs
from validator_yield.helpers.parsers import parse_chain_int


class StorageReader(Protocol):
    """Anything that can read chain storage, e.g. a ChainSession."""

    async def storage(
        self,
        pallet: str,
        item: str,
        *keys: str | int,
        at: str | int | None = None,
    ) -> Any: ...


async def get_validators(session: StorageReader) -> list[str]:
    """Get all active validators for the current session.

    Args:
        session: Storage reader

    Returns:
        Validator addresses in chain order
    """
    value = await session.storage("session", "validators")
    return [str(address) for address in value or []]


async def get_current_era(session: StorageReader) -> int | None:
    """Get the latest planned era, None before the first era."""
    value = await session.storage("staking", "currentEra")
    return None if value is None else parse_chain_int(value)


async def get_active_era(session: StorageReader) -> int | None:
    """Get the era currently being rewarded, None before the first era."""
    value = await session.storage("staking", "activeEra")
    if value is None:
        return None
    if isinstance(value, dict):
        return parse_chain_int(value.get("index"))
    return parse_chain_int(value)


async def get_era_validator_reward(session: StorageReader, era: int) -> int:
    """Get the total payout of an era, 0 while it is not yet known.

    Args:
        session: Storage reader
        era: Era index

    Returns:
        Payout in planck
    """
    value = await session.storage("staking", "erasValidatorReward", era)
    return parse_chain_int(value)


async def get_era_reward_points(session: StorageReader, era: int) -> RewardPointTally:
    """Get the reward point tally of an era.

    Args:
        session: Storage reader
        era: Era index

    Returns:
        Tally, empty when the era has no points
    """
    value = await session.storage("staking", "erasRewardPoints", era)
    if value is None:
        return RewardPointTally()
    return RewardPointTally.model_validate(value)


async def get_era_validator_prefs(
    session: StorageReader, era: int, validator_id: str
) -> ValidatorPrefs:
    """Get a validator's commission preference in an era.

    Args:
        session: Storage reader
        era: Era index
        validator_id: Validator address

    Returns:
        Preferences, zero commission when no record exists
    """
    value = await session.storage("staking", "erasValidatorPrefs", era, validator_id)
    if value is None:
        return ValidatorPrefs()
    return ValidatorPrefs.model_validate(value)


async def get_era_exposure(
    session: StorageReader, era: int, validator_id: str
) -> Exposure:
    """Get the stake backing a validator in an era.

    Reads the paged-exposure overview and falls back to the legacy full
    exposure record for eras recorded before paging existed.

    Args:
        session: Storage reader
        era: Era index
        validator_id: Validator address

    Returns:
        Exposure, zero stake when neither record exists
    """
    value = await session.storage(
        "staking", "erasStakersOverview", era, validator_id
    )
    if value is None:
        value = await session.storage("staking", "erasStakers", era, validator_id)
    if value is None:
        return Exposure.empty()
    return Exposure.model_validate(value)


async def get_nominator_targets(session: StorageReader, address: str) -> list[str]:
    """Get the validators a nominator currently backs.

    Args:
        session: Storage reader
        address: Nominator address

    Returns:
        Target validator addresses, empty if the account is not nominating
    """
    value = await session.storage("staking", "nominators", address)
    if not value:
        return []
    return [str(target) for target in value.get("targets") or []]


__all__ = [
    "StorageReader",
    "get_active_era",
    "get_current_era",
    "get_era_exposure",
    "get_era_reward_points",
    "get_era_validator_prefs",
    "get_era_validator_reward",
    "get_nominator_targets",
    "get_validators",
]
