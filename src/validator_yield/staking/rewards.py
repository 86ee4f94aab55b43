"""Fixed-point reward, commission and APY arithmetic.

All amounts are planck integers and every division is an integer floor
division. The APY is carried as an integer scaled by 10**APY_DECIMALS and only
converted to a Decimal at the end, so large stakes never lose precision.
"""

from decimal import Decimal
from fractions import Fraction

from validator_yield.errors import InvalidArgumentError
from validator_yield.helpers.constants import ANNUALIZATION_FACTOR, APY_DECIMALS, PERBILL
from validator_yield.staking.models import RawFacts, ValidatorMetrics


type AnnualizationFactor = int | float | str | Decimal | Fraction

ZERO_APY = Decimal(f"0e-{APY_DECIMALS}")


def annualization_fraction(annualization_factor: AnnualizationFactor) -> Fraction:
    """Convert an annualization factor to an exact fraction.

    Raises:
        InvalidArgumentError: If the factor is not a positive finite number
    """
    try:
        if isinstance(annualization_factor, float):
            # repr keeps the written digits, Fraction(float) would keep binary noise
            factor = Fraction(repr(annualization_factor))
        else:
            factor = Fraction(annualization_factor)
    except (ValueError, OverflowError, ZeroDivisionError) as e:
        msg = f"Invalid annualization factor: {annualization_factor!r}"
        raise InvalidArgumentError(msg) from e

    if factor <= 0:
        msg = f"Annualization factor must be positive, got {annualization_factor!r}"
        raise InvalidArgumentError(msg)
    return factor


def validator_share(payout: int, reward_points: int, total_reward_points: int) -> int:
    """Split the era payout by reward points.

    Args:
        payout: Era reward pool in planck
        reward_points: Points of the validator
        total_reward_points: Points of all validators in the era

    Returns:
        ``floor(payout * reward_points / total_reward_points)``, 0 when either
        point value is 0
    """
    if total_reward_points == 0 or reward_points == 0:
        return 0
    return payout * reward_points // total_reward_points


def apply_commission(share: int, commission: int) -> int:
    """Deduct the validator's commission from its gross share.

    Args:
        share: Gross reward in planck
        commission: Commission in parts per billion

    Returns:
        ``floor(share * (PERBILL - commission) / PERBILL)``
    """
    return share * (PERBILL - commission) // PERBILL


def annualized_yield(
    net_reward: int,
    total_stake: int,
    annualization_factor: AnnualizationFactor = ANNUALIZATION_FACTOR,
) -> Decimal:
    """Annualize one era's net reward over the stake that earned it.

    Args:
        net_reward: Reward after commission in planck
        total_stake: Stake backing the validator in planck
        annualization_factor: Eras per year

    Returns:
        ``net_reward * factor * 100 / total_stake`` in percent, floored to
        APY_DECIMALS places and clamped at 0

    Raises:
        InvalidArgumentError: If the factor is not a positive number

    Example:
        >>> annualized_yield(225_000, 500_000, 365)
        Decimal('16425.00')
    """
    factor = annualization_fraction(annualization_factor)
    if total_stake <= 0:
        return ZERO_APY

    scale = 10**APY_DECIMALS
    scaled = (net_reward * factor.numerator * 100 * scale) // (
        total_stake * factor.denominator
    )
    if scaled <= 0:
        return ZERO_APY
    return Decimal(f"{scaled}e-{APY_DECIMALS}")


def compute_metrics(
    facts: RawFacts,
    *,
    annualization_factor: AnnualizationFactor = ANNUALIZATION_FACTOR,
) -> ValidatorMetrics:
    """Compute a validator's net reward and APY from its era facts.

    Pure and deterministic: identical facts give identical metrics.

    Args:
        facts: Validated chain facts for one validator and era
        annualization_factor: Eras per year

    Returns:
        ValidatorMetrics for the validator and era

    Example:
        ```python
        facts = RawFacts(
            validator_id=address, era=1510, payout=1_000_000,
            reward_points=25, total_reward_points=100,
            commission=100_000_000, total_stake=500_000,
        )
        compute_metrics(facts).apy  # Decimal("16425.00")
        ```
    """
    share = validator_share(facts.payout, facts.reward_points, facts.total_reward_points)
    net_reward = max(apply_commission(share, facts.commission), 0)
    apy = annualized_yield(net_reward, facts.total_stake, annualization_factor)

    return ValidatorMetrics(
        validator_id=facts.validator_id,
        era=facts.era,
        commission=facts.commission,
        total_stake=facts.total_stake,
        own_stake=facts.own_stake,
        reward_points=facts.reward_points,
        nominator_count=facts.nominator_count,
        validator_share=share,
        reward_after_commission=net_reward,
        apy=apy,
    )


__all__ = [
    "ZERO_APY",
    "AnnualizationFactor",
    "annualization_fraction",
    "annualized_yield",
    "apply_commission",
    "compute_metrics",
    "validator_share",
]
