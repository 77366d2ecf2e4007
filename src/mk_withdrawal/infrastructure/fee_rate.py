"""Platform fee rate sources."""


class StaticFeeRateSource:
    """Fee rate fixed at construction (PLATFORM_FEE_BPS)."""

    def __init__(self, fee_rate_bps: int) -> None:
        if not (0 <= fee_rate_bps < 10000):
            raise ValueError(f"fee_rate_bps must be in [0, 10000), got {fee_rate_bps}")
        self._bps = fee_rate_bps

    async def get_fee_rate_bps(self) -> int:
        return self._bps
