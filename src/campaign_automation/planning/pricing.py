"""CPM-based compensation suggestion for drafted contracts.

All monetary calculations use Decimal arithmetic to avoid floating-point errors.
Fees are quantized to two decimal places with ROUND_HALF_UP rounding.
"""

from decimal import ROUND_HALF_UP, Decimal

# Precision: all monetary values quantized to 2 decimal places
TWO_PLACES = Decimal("0.01")

DEFAULT_CPM = Decimal("20")

# Engagement premiums, checked from the highest threshold down
ENGAGEMENT_PREMIUMS: tuple[tuple[float, Decimal], ...] = (
    (5.0, Decimal("0.15")),
    (3.0, Decimal("0.08")),
)


def calculate_base_fee(followers: int, cpm: Decimal = DEFAULT_CPM) -> Decimal:
    """Calculate the base fee for a creator's audience size.

    Formula: (followers / 1000) * cpm, quantized to 2 decimal places.

    Args:
        followers: Follower count of the creator.
        cpm: Cost per thousand followers.

    Returns:
        The base fee as a Decimal with exactly 2 decimal places.

    Raises:
        ValueError: If followers is negative.
    """
    if followers < 0:
        raise ValueError(f"followers must not be negative, got {followers}")
    fee = Decimal(followers) / Decimal("1000") * cpm
    return fee.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def engagement_premium(engagement_rate: float) -> Decimal:
    """Return the premium multiplier for an engagement rate given in percent."""
    for threshold, premium in ENGAGEMENT_PREMIUMS:
        if engagement_rate > threshold:
            return premium
    return Decimal("0")


def suggest_compensation(
    followers: int,
    engagement_rate: float,
    cpm: Decimal = DEFAULT_CPM,
) -> Decimal:
    """Suggest a contract fee from audience size and engagement.

    Above 5% engagement the base fee is raised by 15%, above 3% by 8%.

    Args:
        followers: Follower count of the creator.
        engagement_rate: Engagement rate in percent.
        cpm: Cost per thousand followers.

    Returns:
        The suggested fee with exactly 2 decimal places.
    """
    base = calculate_base_fee(followers, cpm)
    fee = base * (Decimal("1") + engagement_premium(engagement_rate))
    return fee.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
