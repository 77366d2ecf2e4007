"""Payout provider adapters.

HttpPayoutProvider talks to a generic payouts HTTP API; the wire format of any
specific PSP is out of scope. SimulatedPayoutProvider is used when no provider
URL is configured (local dev, staging).

Both honour the idempotency contract: the withdrawal id is sent as the
Idempotency-Key, so an approve retried after a crash gets the same payout id
back instead of paying twice.
"""

import logging

import httpx

from src.mk_common.errors import PayoutProviderError
from src.mk_withdrawal.domain.models import PayoutResult

logger = logging.getLogger(__name__)


class HttpPayoutProvider:
    def __init__(
        self,
        base_url: str,
        api_key: str,
        timeout_seconds: float,
        currency: str,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout_seconds
        self._currency = currency
        self._transport = transport

    async def create_payout(
        self, user_id: str, amount_cents: int, withdrawal_request_id: str
    ) -> PayoutResult:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Idempotency-Key": withdrawal_request_id,
        }
        body = {
            "recipient_id": user_id,
            "amount_cents": amount_cents,
            "currency": self._currency,
            "metadata": {"withdrawal_request_id": withdrawal_request_id},
        }
        try:
            async with httpx.AsyncClient(
                base_url=self._base_url, timeout=self._timeout, transport=self._transport
            ) as client:
                resp = await client.post("/payouts", json=body, headers=headers)
                resp.raise_for_status()
                payload = resp.json()
        except httpx.HTTPStatusError as e:
            raise PayoutProviderError(f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise PayoutProviderError(type(e).__name__) from e
        except ValueError as e:
            raise PayoutProviderError("malformed response body") from e

        payout_id = payload.get("id") if isinstance(payload, dict) else None
        if not payout_id:
            raise PayoutProviderError("response did not include a payout id")
        logger.info(
            "Payout created: withdrawal=%s payout=%s amount=%d",
            withdrawal_request_id, payout_id, amount_cents,
        )
        return PayoutResult(payout_id=str(payout_id))


class SimulatedPayoutProvider:
    """Deterministic stand-in: payout id derived from the withdrawal id."""

    async def create_payout(
        self, user_id: str, amount_cents: int, withdrawal_request_id: str
    ) -> PayoutResult:
        logger.info(
            "Simulated payout: user=%s amount=%d withdrawal=%s",
            user_id, amount_cents, withdrawal_request_id,
        )
        return PayoutResult(payout_id=f"sim_{withdrawal_request_id}")
