"""Collaborators the state machine calls but does not implement."""

from typing import Protocol

from src.mk_withdrawal.domain.models import PayoutResult


class PayoutProviderProtocol(Protocol):
    async def create_payout(
        self, user_id: str, amount_cents: int, withdrawal_request_id: str
    ) -> PayoutResult:
        """Send money to the creator. Must be idempotent per withdrawal_request_id.

        Raises PayoutProviderError on any failure.
        """
        ...


class FeeRateSource(Protocol):
    async def get_fee_rate_bps(self) -> int:
        """Current platform fee in basis points (300 = 3%)."""
        ...
