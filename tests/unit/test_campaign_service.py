"""Unit tests for CampaignBudgetService."""

from datetime import UTC, datetime, timedelta

import pytest

from src.mk_campaign.application.schemas import BudgetSyncRequest
from src.mk_campaign.application.service import CampaignBudgetService
from src.mk_common.errors import CampaignNotFoundError, ForbiddenError, InvalidBudgetError

START = datetime(2026, 3, 1, tzinfo=UTC)


def _body(total: int = 10000, **kwargs) -> BudgetSyncRequest:
    return BudgetSyncRequest(
        advertiser_id="adv-1",
        total_budget_cents=total,
        campaign_start_date=START,
        campaign_end_date=START + timedelta(days=30),
        **kwargs,
    )


@pytest.fixture
def campaigns(campaign_repo) -> CampaignBudgetService:
    return CampaignBudgetService(campaign_repo, currency="EUR")


class TestSyncBudget:
    async def test_creates_budget(self, db, campaigns) -> None:
        resp = await campaigns.sync_budget(db, "cmp-1", _body(pacing_mode="ACCELERATED"))

        assert resp.total_budget_cents == 10000
        assert resp.spent_budget_cents == 0
        assert resp.remaining_display == "€100.00"
        assert resp.pacing_mode == "ACCELERATED"
        assert db.commits == 1

    async def test_update_keeps_spend(self, db, campaigns, campaign_repo) -> None:
        await campaigns.sync_budget(db, "cmp-1", _body())
        await campaign_repo.increment_spend(db, "cmp-1", 4000)
        await db.commit()

        resp = await campaigns.sync_budget(db, "cmp-1", _body(total=20000, status="PAUSED"))

        assert resp.spent_budget_cents == 4000
        assert resp.remaining_budget_cents == 16000
        assert resp.status == "PAUSED"

    async def test_cannot_lower_total_below_spent(self, db, campaigns, campaign_repo) -> None:
        await campaigns.sync_budget(db, "cmp-1", _body())
        await campaign_repo.increment_spend(db, "cmp-1", 4000)
        await db.commit()

        with pytest.raises(InvalidBudgetError) as exc_info:
            await campaigns.sync_budget(db, "cmp-1", _body(total=3999))

        assert "4000" in exc_info.value.message
        assert (await campaign_repo.get_budget(db, "cmp-1")).total_budget_cents == 10000

    async def test_lowering_to_exactly_spent_is_allowed(self, db, campaigns, campaign_repo) -> None:
        await campaigns.sync_budget(db, "cmp-1", _body())
        await campaign_repo.increment_spend(db, "cmp-1", 4000)
        await db.commit()

        resp = await campaigns.sync_budget(db, "cmp-1", _body(total=4000))
        assert resp.remaining_budget_cents == 0


class TestViewerAccess:
    async def test_owner_can_view(self, db, campaigns) -> None:
        await campaigns.sync_budget(db, "cmp-1", _body())
        budget = await campaigns.get_for_viewer(db, "cmp-1", "adv-1", is_admin=False)
        assert budget.campaign_id == "cmp-1"

    async def test_other_advertiser_forbidden(self, db, campaigns) -> None:
        await campaigns.sync_budget(db, "cmp-1", _body())
        with pytest.raises(ForbiddenError):
            await campaigns.get_for_viewer(db, "cmp-1", "adv-2", is_admin=False)

    async def test_admin_can_view_any(self, db, campaigns) -> None:
        await campaigns.sync_budget(db, "cmp-1", _body())
        budget = await campaigns.get_for_viewer(db, "cmp-1", "admin-1", is_admin=True)
        assert budget.advertiser_id == "adv-1"

    async def test_unknown_campaign(self, db, campaigns) -> None:
        with pytest.raises(CampaignNotFoundError):
            await campaigns.get_for_viewer(db, "missing", "adv-1", is_admin=True)
