"""Pydantic models for staking records read from the chain data source."""

from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from validator_yield.helpers.constants import PERBILL
from validator_yield.helpers.parsers import parse_chain_int


class RewardPointTally(BaseModel):
    """Reward points of one era (``staking.erasRewardPoints``)."""

    total: int = Field(default=0, ge=0, description="Era-wide point total")
    individual: dict[str, int] = Field(
        default_factory=dict, description="Points per validator address"
    )

    model_config = ConfigDict(frozen=True)

    @field_validator("total", mode="before")
    @classmethod
    def _parse_total(cls, value: Any) -> int:
        return parse_chain_int(value)

    @field_validator("individual", mode="before")
    @classmethod
    def _parse_individual(cls, value: Any) -> dict[str, int]:
        # Mapping form or a list of [address, points] pairs
        if value is None:
            return {}
        pairs = value.items() if isinstance(value, dict) else value
        return {str(address): parse_chain_int(points) for address, points in pairs}

    @model_validator(mode="after")
    def _check_points(self) -> Self:
        if any(points < 0 for points in self.individual.values()):
            msg = "Reward points cannot be negative"
            raise ValueError(msg)
        if sum(self.individual.values()) > self.total:
            msg = (
                f"Individual reward points sum to more than the era total "
                f"({sum(self.individual.values())} > {self.total})"
            )
            raise ValueError(msg)
        return self

    def points_for(self, validator_id: str) -> int:
        """Points earned by one validator, 0 if it earned none."""
        return self.individual.get(validator_id, 0)


class Exposure(BaseModel):
    """Stake backing a validator in one era.

    Built from ``staking.erasStakersOverview`` or the legacy
    ``staking.erasStakers`` record, which lists nominators in ``others``.
    """

    total: int = Field(default=0, ge=0, description="Own plus nominated stake")
    own: int = Field(default=0, ge=0, description="Validator's own stake")
    nominator_count: int = Field(default=0, ge=0, alias="nominatorCount")

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _from_legacy_exposure(cls, data: Any) -> Any:
        if isinstance(data, dict) and "others" in data and "nominatorCount" not in data:
            data = {**data, "nominatorCount": len(data.get("others") or [])}
        return data

    @field_validator("total", "own", "nominator_count", mode="before")
    @classmethod
    def _parse_amount(cls, value: Any) -> int:
        return parse_chain_int(value)

    @model_validator(mode="after")
    def _check_own_stake(self) -> Self:
        if self.own > self.total:
            msg = f"Own stake {self.own} exceeds total stake {self.total}"
            raise ValueError(msg)
        return self

    @classmethod
    def empty(cls) -> Self:
        """Exposure of a validator with no stake record in the era."""
        return cls(total=0, own=0, nominator_count=0)


class ValidatorPrefs(BaseModel):
    """Commission preference of a validator in one era."""

    commission: int = Field(
        default=0, ge=0, le=PERBILL, description="Commission in parts per billion"
    )
    blocked: bool = False

    model_config = ConfigDict(frozen=True)

    @field_validator("commission", mode="before")
    @classmethod
    def _parse_commission(cls, value: Any) -> int:
        return parse_chain_int(value)


__all__ = [
    "Exposure",
    "RewardPointTally",
    "ValidatorPrefs",
]
