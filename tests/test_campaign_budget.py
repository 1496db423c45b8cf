# tests/test_campaign_budget.py
"""
Tests for the weekly campaign budget calculator.

Formula under test:
    baseBudget   = 200 during weeks 0-1, totalSales / 2.5 after
    cappedBudget = min(baseBudget, 800)
    overflowOut  = max(0, baseBudget - 800)
    totalBudget  = cappedBudget + overflowIn

Run:
    pytest tests/test_campaign_budget.py -v
"""
from dataclasses import replace
from datetime import timedelta
from decimal import Decimal

import pytest

from conftest import WEEK_0, WEEK_1, WEEK_2, WEEK_3
from llave_system.errors import DataIntegrityError
from llave_system.services.campaign_budget_service import CampaignBudgetCalculator


@pytest.fixture
def calculator():
    return CampaignBudgetCalculator()


# =============================================================================
# TEST CLASS: Single campaign
# =============================================================================

class TestCalculateCampaignBudget:
    """One campaign, one week."""

    def test_initial_week_is_flat(self, calculator, campaign_record):
        """
        TEST: week 0 with large sales.

        Verify: base 200, capped 200, no overflow, total 200.
        """
        snapshot = calculator.calculateCampaignBudget(campaign_record(), 0, Decimal("99999"))

        assert snapshot.isInitialPeriod is True
        assert snapshot.baseBudget == Decimal("200.00")
        assert snapshot.cappedBudget == Decimal("200.00")
        assert snapshot.overflowOut == Decimal("0")
        assert snapshot.totalBudget == Decimal("200.00")

    def test_week_one_still_initial(self, calculator, campaign_record):
        snapshot = calculator.calculateCampaignBudget(campaign_record(), 1, Decimal("0"))

        assert snapshot.isInitialPeriod is True
        assert snapshot.baseBudget == Decimal("200.00")

    def test_week_two_uses_sales(self, calculator, campaign_record):
        """TEST: 1000 / 2.5 = 400."""
        snapshot = calculator.calculateCampaignBudget(campaign_record(), 2, Decimal("1000"))

        assert snapshot.isInitialPeriod is False
        assert snapshot.baseBudget == Decimal("400.00")
        assert snapshot.totalBudget == Decimal("400.00")

    def test_over_cap_overflows(self, calculator, campaign_record):
        """
        TEST: week 3, sales 2500.

        Verify: base 1000, capped 800, overflow 200.
        """
        snapshot = calculator.calculateCampaignBudget(campaign_record(), 3, Decimal("2500"))

        assert snapshot.baseBudget == Decimal("1000.00")
        assert snapshot.cappedBudget == Decimal("800.00")
        assert snapshot.overflowOut == Decimal("200.00")
        assert snapshot.needsChildCampaign is True

    def test_exactly_at_cap(self, calculator, campaign_record):
        """TEST: 2000 / 2.5 = 800 -> no overflow, no child."""
        snapshot = calculator.calculateCampaignBudget(campaign_record(), 5, Decimal("2000"))

        assert snapshot.cappedBudget == Decimal("800.00")
        assert snapshot.overflowOut == Decimal("0")
        assert snapshot.needsChildCampaign is False

    def test_base_rounded_half_up(self, calculator, campaign_record):
        """TEST: 0.0125 / 2.5 = 0.005 -> 0.01."""
        snapshot = calculator.calculateCampaignBudget(campaign_record(), 2, Decimal("0.0125"))

        assert snapshot.baseBudget == Decimal("0.01")

    def test_existing_child_not_requested_again(self, calculator, campaign_record):
        campaign = campaign_record(childCampaignId="c2")

        snapshot = calculator.calculateCampaignBudget(campaign, 3, Decimal("2500"))

        assert snapshot.overflowOut == Decimal("200.00")
        assert snapshot.needsChildCampaign is False

    def test_child_adds_parent_overflow(self, calculator, campaign_record):
        """TEST: child week 0 with 150 inbound -> 200 + 150 = 350."""
        child = campaign_record("c2", chainPosition=2, parentCampaignId="c1")

        snapshot = calculator.calculateCampaignBudget(child, 0, Decimal("0"), Decimal("150"))

        assert snapshot.overflowIn == Decimal("150.00")
        assert snapshot.totalBudget == Decimal("350.00")

    def test_inbound_overflow_never_compounds(self, calculator, campaign_record):
        """TEST: overflowOut comes from baseBudget only, even when total exceeds the cap."""
        child = campaign_record("c2", chainPosition=2, parentCampaignId="c1")

        snapshot = calculator.calculateCampaignBudget(child, 4, Decimal("2000"), Decimal("500"))

        assert snapshot.cappedBudget == Decimal("800.00")
        assert snapshot.totalBudget == Decimal("1300.00")
        assert snapshot.overflowOut == Decimal("0")

    def test_root_ignores_stray_overflow(self, calculator, campaign_record):
        snapshot = calculator.calculateCampaignBudget(campaign_record(), 0, Decimal("0"), Decimal("300"))

        assert snapshot.overflowIn == Decimal("0")
        assert snapshot.totalBudget == Decimal("200.00")


# =============================================================================
# TEST CLASS: Errors
# =============================================================================

class TestBudgetErrors:
    """Inconsistent inputs raise DataIntegrityError."""

    def test_negative_sales(self, calculator, campaign_record):
        with pytest.raises(DataIntegrityError):
            calculator.calculateCampaignBudget(campaign_record(), 2, Decimal("-1"))

    def test_negative_week_index(self, calculator, campaign_record):
        with pytest.raises(DataIntegrityError):
            calculator.calculateCampaignBudget(campaign_record(), -1, Decimal("0"))

    def test_child_without_parent_snapshot(self, calculator, campaign_record):
        child = campaign_record("c2", chainPosition=2, parentCampaignId="c1")

        with pytest.raises(DataIntegrityError):
            calculator.calculateCampaignBudget(child, 0, Decimal("0"))

    def test_week_before_creation(self, calculator, campaign_record):
        with pytest.raises(DataIntegrityError):
            calculator.weekIndexFor(campaign_record(weekDate=WEEK_2), WEEK_1)


# =============================================================================
# TEST CLASS: Week index
# =============================================================================

class TestWeekIndex:
    """Weeks counted from the campaign's first evaluation week."""

    def test_creation_week_is_zero(self, calculator, campaign_record):
        assert calculator.weekIndexFor(campaign_record(weekDate=WEEK_0), WEEK_0) == 0

    def test_counts_full_weeks(self, calculator, campaign_record):
        assert calculator.weekIndexFor(campaign_record(weekDate=WEEK_0), WEEK_3) == 3

    def test_mid_week_creation_belongs_to_that_week(self, calculator, campaign_record, week_start):
        """TEST: a campaign opened on Saturday still has index 0 on its own week."""
        campaign = replace(campaign_record(), createdAt=week_start(WEEK_1) + timedelta(days=3))

        assert calculator.weekIndexFor(campaign, WEEK_1) == 0
        assert calculator.weekIndexFor(campaign, WEEK_2) == 1


# =============================================================================
# TEST CLASS: Whole chain
# =============================================================================

class TestCalculateChainWeek:
    """Overflow cascades down the chain in position order."""

    def test_overflow_feeds_child(self, calculator, campaign_record):
        """
        TEST: root week 3 with 2500 sales, child created week 3.

        Verify: root overflows 200, child gets 200 + 200.
        """
        root = campaign_record("c1", weekDate=WEEK_0, childCampaignId="c2")
        child = campaign_record("c2", weekDate=WEEK_3, chainPosition=2, parentCampaignId="c1")

        snapshots = calculator.calculateChainWeek(
            [child, root], WEEK_3, {"c1": Decimal("2500"), "c2": Decimal("0")}
        )

        assert [s.campaignId for s in snapshots] == ["c1", "c2"]
        assert snapshots[0].overflowOut == Decimal("200.00")
        assert snapshots[1].overflowIn == Decimal("200.00")
        assert snapshots[1].totalBudget == Decimal("400.00")

    def test_overflow_cascades_two_levels(self, calculator, campaign_record):
        """TEST: c1 out 200 -> c2 (own out 400) -> c3 gets 400 only."""
        c1 = campaign_record("c1", weekDate=WEEK_0, childCampaignId="c2")
        c2 = campaign_record("c2", weekDate=WEEK_0, chainPosition=2, parentCampaignId="c1", childCampaignId="c3")
        c3 = campaign_record("c3", weekDate=WEEK_3, chainPosition=3, parentCampaignId="c2")

        snapshots = calculator.calculateChainWeek(
            [c1, c2, c3], WEEK_3,
            {"c1": Decimal("2500"), "c2": Decimal("3000"), "c3": Decimal("0")}
        )

        assert snapshots[1].totalBudget == Decimal("1000.00")
        assert snapshots[1].overflowOut == Decimal("400.00")
        assert snapshots[2].overflowIn == Decimal("400.00")

    def test_closed_campaign_skipped(self, calculator, campaign_record):
        """TEST: closed root gets no snapshot and passes nothing on."""
        c1 = campaign_record("c1", weekDate=WEEK_0, childCampaignId="c2", status="CLOSED")
        c2 = campaign_record("c2", weekDate=WEEK_0, chainPosition=2, parentCampaignId="c1")

        snapshots = calculator.calculateChainWeek([c1, c2], WEEK_3, {"c2": Decimal("500")})

        assert [s.campaignId for s in snapshots] == ["c2"]
        assert snapshots[0].overflowIn == Decimal("0")
        assert snapshots[0].totalBudget == Decimal("200.00")

    def test_missing_sales_figure(self, calculator, campaign_record):
        with pytest.raises(DataIntegrityError):
            calculator.calculateChainWeek([campaign_record()], WEEK_3, {})

    def test_gap_in_positions(self, calculator, campaign_record):
        c1 = campaign_record("c1")
        c3 = campaign_record("c3", chainPosition=3, parentCampaignId="c1")

        with pytest.raises(DataIntegrityError):
            calculator.calculateChainWeek([c1, c3], WEEK_3, {"c1": Decimal("0"), "c3": Decimal("0")})

    def test_wrong_parent_link(self, calculator, campaign_record):
        c1 = campaign_record("c1")
        c2 = campaign_record("c2", chainPosition=2, parentCampaignId="other")

        with pytest.raises(DataIntegrityError):
            calculator.calculateChainWeek([c1, c2], WEEK_3, {"c1": Decimal("0"), "c2": Decimal("0")})


# =============================================================================
# TEST CLASS: Snapshot series
# =============================================================================

class TestSnapshotSeries:
    """Every week of a campaign's life needs a snapshot."""

    def test_complete_series_passes(self, calculator, campaign_record):
        calculator.validateSnapshotSeries(campaign_record(weekDate=WEEK_0), [WEEK_0, WEEK_1, WEEK_2], WEEK_3)

    def test_missing_week_raises(self, calculator, campaign_record):
        with pytest.raises(DataIntegrityError) as exc:
            calculator.validateSnapshotSeries(campaign_record(weekDate=WEEK_0), [WEEK_0, WEEK_2], WEEK_3)

        assert WEEK_1.isoformat() in str(exc.value)

    def test_new_campaign_needs_nothing(self, calculator, campaign_record):
        calculator.validateSnapshotSeries(campaign_record(weekDate=WEEK_3), [], WEEK_3)
