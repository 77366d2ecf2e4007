"""Integer arithmetic utilities for cents-based money.

All amounts and balances use int (cents). No float, no Decimal.
Percentages and rates are the only floats in the system.
"""

_CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£"}


def cents_to_display(cents: int, currency: str = "EUR") -> str:
    """Convert cents to display string: 6500 -> '€65.00', -1200 -> '-€12.00'."""
    symbol = _CURRENCY_SYMBOLS.get(currency, f"{currency} ")
    if cents < 0:
        abs_cents = -cents
        return f"-{symbol}{abs_cents // 100:,}.{abs_cents % 100:02d}"
    return f"{symbol}{cents // 100:,}.{cents % 100:02d}"


def calculate_fee(amount: int, fee_rate_bps: int) -> int:
    """Calculate fee with ceiling division (platform never loses).

    fee = ceil(amount * fee_rate_bps / 10000)
    Using integer ceiling: (a + b - 1) // b
    """
    if amount == 0 or fee_rate_bps == 0:
        return 0
    return (amount * fee_rate_bps + 9999) // 10000


def percent_of(part: int, whole: int) -> float:
    """part / whole * 100, or 0.0 when whole is zero."""
    if whole == 0:
        return 0.0
    return part / whole * 100


def holdback(amount: int, percent: int) -> int:
    """Floor of amount * percent / 100: reserve retained from released payouts."""
    return amount * percent // 100
