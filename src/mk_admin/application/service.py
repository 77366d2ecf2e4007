"""Admin application service: privileged actions and background jobs.

Jobs run under a Redis lock so two instances never recalculate or reconcile
at the same time.
"""

import logging
from typing import Any

import redis.asyncio as aioredis
from sqlalchemy.ext.asyncio import AsyncSession

from src.mk_common.datetime_utils import utc_now
from src.mk_common.enums import WithdrawalAction
from src.mk_common.redis_client import job_lock
from src.mk_ledger.application.reconciliation import verify_ledger_consistency
from src.mk_pacing.application.schemas import PacingJobResponse
from src.mk_pacing.application.service import PacingService
from src.mk_risk.application.financials_service import FinancialsService
from src.mk_risk.application.schemas import HealthJobResponse
from src.mk_withdrawal.application.schemas import AdminWithdrawalActionRequest, WithdrawalItem
from src.mk_withdrawal.application.service import WithdrawalService

logger = logging.getLogger(__name__)

PACING_JOB = "pacing-recalculation"
HEALTH_JOB = "campaign-health"
RECONCILIATION_JOB = "ledger-reconciliation"


class AdminService:
    def __init__(
        self,
        withdrawals: WithdrawalService,
        pacing: PacingService,
        financials: FinancialsService,
        job_lock_ttl_seconds: int = 300,
    ) -> None:
        self._withdrawals = withdrawals
        self._pacing = pacing
        self._financials = financials
        self._lock_ttl = job_lock_ttl_seconds

    async def apply_withdrawal_action(
        self, db: AsyncSession, body: AdminWithdrawalActionRequest, actor_id: str
    ) -> WithdrawalItem:
        logger.info(
            "Admin withdrawal action: id=%s action=%s by=%s",
            body.withdrawal_id, body.action.value, actor_id,
        )
        if body.action == WithdrawalAction.APPROVE:
            withdrawal = await self._withdrawals.approve_withdrawal(db, body.withdrawal_id)
        elif body.action == WithdrawalAction.MARK_PAID:
            withdrawal = await self._withdrawals.mark_paid(
                db, body.withdrawal_id, body.provider_reference
            )
        elif body.action == WithdrawalAction.CANCEL:
            withdrawal = (await self._withdrawals.cancel_withdrawal(db, body.withdrawal_id, None)).withdrawal
        else:  # FAIL
            reason = body.reason or f"Marked failed by {actor_id}"
            withdrawal = (await self._withdrawals.fail_withdrawal(db, body.withdrawal_id, reason)).withdrawal
        return WithdrawalItem.from_domain(withdrawal)

    async def run_pacing_job(self, db: AsyncSession, redis: aioredis.Redis) -> PacingJobResponse:
        async with job_lock(redis, PACING_JOB, self._lock_ttl):
            return await self._pacing.recalculate_all(db)

    async def run_health_job(self, db: AsyncSession, redis: aioredis.Redis) -> HealthJobResponse:
        async with job_lock(redis, HEALTH_JOB, self._lock_ttl):
            return await self._financials.check_all_campaigns(db)

    async def run_reconciliation(self, db: AsyncSession, redis: aioredis.Redis) -> dict[str, Any]:
        async with job_lock(redis, RECONCILIATION_JOB, self._lock_ttl):
            violations = await verify_ledger_consistency(db)
        return {
            "checked_at": utc_now().isoformat(),
            "consistent": not violations,
            "violations": violations,
        }
