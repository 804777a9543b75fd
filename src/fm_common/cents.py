"""Integer arithmetic utilities for cents-based team valuations.

All prices, market caps, and balances use int (cents). No float, no Decimal.
"""


def share_price(market_cap: int, total_shares: int) -> int:
    """Price per share in cents: market_cap / total_shares, rounded half-up.

    10000 / 1000 -> 10, 10500 / 1000 -> 11 (10.5 rounds up), 10499 / 1000 -> 10.
    """
    if total_shares <= 0:
        raise ValueError(f"total_shares must be positive, got {total_shares}")
    if market_cap < 0:
        raise ValueError(f"market_cap must be non-negative, got {market_cap}")
    return (2 * market_cap + total_shares) // (2 * total_shares)


def match_transfer_amount(loser_market_cap: int, percent: int) -> int:
    """Nominal match transfer: floor(loser_cap * percent / 100)."""
    return (loser_market_cap * percent) // 100


def proportional_cost(total_invested: int, quantity: int, current_quantity: int) -> int:
    """Cost basis removed when selling `quantity` of `current_quantity` shares (floor)."""
    if current_quantity <= 0:
        return 0
    return (total_invested * quantity) // current_quantity


def cents_to_display(cents: int) -> str:
    """Convert cents to display string: 6500 -> '$65.00', -1200 -> '-$12.00'."""
    if cents < 0:
        abs_cents = -cents
        return f"-${abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"${cents // 100:,}.{cents % 100:02d}"
