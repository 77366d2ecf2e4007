"""Repository Protocol for token wallets and their transaction history."""

from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_tokens.domain.models import TokenTransaction, TokenWallet


class TokenWalletRepositoryProtocol(Protocol):
    async def get_wallet(self, db: AsyncSession, user_id: str) -> TokenWallet | None: ...

    async def create_wallet(
        self, db: AsyncSession, user_id: str, grant_tokens: int
    ) -> TokenWallet | None: ...

    async def credit_wallet(
        self, db: AsyncSession, user_id: str, tokens: int, reason: str
    ) -> TokenWallet | None: ...

    async def debit_wallet(
        self, db: AsyncSession, user_id: str, tokens: int
    ) -> TokenWallet | None: ...

    async def insert_transaction(self, db: AsyncSession, tx: TokenTransaction) -> TokenTransaction: ...

    async def find_transaction_by_reference(
        self, db: AsyncSession, user_id: str, reference_id: str, for_update: bool = False
    ) -> TokenTransaction | None: ...

    async def update_transaction(
        self, db: AsyncSession, tx_id: str, tx_type: str, status: str, description: str | None
    ) -> TokenTransaction: ...

    async def list_transactions(
        self,
        db: AsyncSession,
        user_id: str,
        limit: int,
        offset: int,
        tx_type: str | None,
    ) -> tuple[list[TokenTransaction], int]: ...
