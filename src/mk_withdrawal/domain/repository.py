"""Repository Protocol for withdrawal requests.

Requests are never deleted; update_status is the only mutation.
"""

from datetime import datetime
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_withdrawal.domain.models import StatusSummary, WithdrawalRequest


class WithdrawalRepositoryProtocol(Protocol):
    async def create(self, db: AsyncSession, withdrawal: WithdrawalRequest) -> WithdrawalRequest: ...

    async def get(
        self, db: AsyncSession, withdrawal_id: str, for_update: bool = False
    ) -> WithdrawalRequest | None: ...

    async def find_active_for_creator(
        self, db: AsyncSession, creator_id: str
    ) -> WithdrawalRequest | None: ...

    async def update_status(
        self,
        db: AsyncSession,
        withdrawal_id: str,
        status: str,
        provider_reference: str | None = None,
        failure_reason: str | None = None,
        processed_at: datetime | None = None,
    ) -> WithdrawalRequest: ...

    async def list_requests(
        self,
        db: AsyncSession,
        creator_id: str | None,
        status: str | None,
        limit: int,
        offset: int,
    ) -> tuple[list[WithdrawalRequest], int]: ...

    async def summarize_by_status(self, db: AsyncSession) -> list[StatusSummary]: ...
