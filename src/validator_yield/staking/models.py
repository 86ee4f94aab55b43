"""Pydantic models for per-era validator facts and derived yield metrics."""

from decimal import Decimal

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator

from validator_yield.chain.models import RewardPointTally
from validator_yield.helpers.constants import PERBILL


class EraTotals(BaseModel):
    """Era-wide facts shared by every validator of the era."""

    era: int = Field(..., ge=0)
    payout: int = Field(default=0, ge=0, description="Era reward pool in planck")
    reward_points: RewardPointTally = Field(default_factory=RewardPointTally)

    model_config = ConfigDict(frozen=True)


class RawFacts(BaseModel):
    """Chain facts needed to compute one validator's yield in one era.

    Optional chain data (commission, exposure) defaults to zero.
    """

    validator_id: str = Field(..., min_length=1)
    era: int = Field(..., ge=0)
    payout: int = Field(default=0, ge=0)
    reward_points: int = Field(default=0, ge=0)
    total_reward_points: int = Field(default=0, ge=0)
    commission: int = Field(
        default=0, ge=0, le=PERBILL, description="Commission in parts per billion"
    )
    total_stake: int = Field(default=0, ge=0)
    own_stake: int = Field(default=0, ge=0)
    nominator_count: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def _check_consistency(self) -> Self:
        if self.total_reward_points and self.reward_points > self.total_reward_points:
            msg = (
                f"Validator points {self.reward_points} exceed era total "
                f"{self.total_reward_points}"
            )
            raise ValueError(msg)
        if self.own_stake > self.total_stake:
            msg = f"Own stake {self.own_stake} exceeds total stake {self.total_stake}"
            raise ValueError(msg)
        return self


class ValidatorMetrics(BaseModel):
    """Yield of one validator in one era. Never mutated once computed."""

    validator_id: str
    era: int
    commission: int = Field(..., description="Commission in parts per billion")
    total_stake: int
    own_stake: int
    reward_points: int
    nominator_count: int = 0
    validator_share: int = Field(..., description="Gross era reward in planck")
    reward_after_commission: int = Field(..., description="Net era reward in planck")
    apy: Decimal = Field(..., description="Annualized yield in percent")

    model_config = ConfigDict(frozen=True)

    @property
    def commission_percent(self) -> Decimal:
        """Commission as a percentage."""
        return Decimal(self.commission) * 100 / PERBILL


class SkippedValidator(BaseModel):
    """A validator left out of the results, with the reason."""

    validator_id: str
    era: int
    reason: str

    model_config = ConfigDict(frozen=True)


class BatchResult(BaseModel):
    """Outcome of one settled batch, in input order."""

    batch_index: int = Field(..., ge=0)
    metrics: tuple[ValidatorMetrics, ...] = ()
    skipped: tuple[SkippedValidator, ...] = ()

    model_config = ConfigDict(frozen=True)


class RetrievalResult(BaseModel):
    """Everything delivered by one retrieval run."""

    era: int
    metrics: list[ValidatorMetrics] = Field(default_factory=list)
    skipped: list[SkippedValidator] = Field(default_factory=list)
    batches: int = 0
    cancelled: bool = False

    @property
    def skipped_ids(self) -> list[str]:
        """Addresses of skipped validators in input order."""
        return [skipped.validator_id for skipped in self.skipped]


class NominatorEraActivity(BaseModel):
    """Whether one of a nominator's targets was backed in an era."""

    era: int
    validator_id: str
    active: bool

    model_config = ConfigDict(frozen=True)


__all__ = [
    "BatchResult",
    "EraTotals",
    "NominatorEraActivity",
    "RawFacts",
    "RetrievalResult",
    "SkippedValidator",
    "ValidatorMetrics",
]
