# llave_system/services/campaign_budget_service.py
"""
Campaign budget service - weekly budget snapshots with cap and overflow cascade.
"""
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, Hashable, Iterable, List, Optional
import logging

from llave_system.config.rules import (
    CampaignStatus,
    CAMPAIGN_BUDGET_CAP,
    CAMPAIGN_INITIAL_BUDGET,
    CAMPAIGN_INITIAL_WEEKS,
    CAMPAIGN_SALES_DIVISOR,
)
from llave_system.errors import DataIntegrityError
from llave_system.types import BudgetSnapshot, CampaignRecord
from llave_system.utils.money import ZERO, roundMoney, toDecimal
from llave_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


class CampaignBudgetCalculator:
    """
    Pure weekly budget calculator.

    Formula per campaign per week:
    - First 2 weeks of life: flat 200
    - After: totalSales / 2.5
    - cappedBudget = min(baseBudget, 800)
    - overflowOut = max(0, baseBudget - 800), pushed to the child campaign
    - totalBudget = cappedBudget + overflowIn

    overflowOut is derived from baseBudget only; overflowIn is passed through
    into totalBudget uncapped and never compounds into overflowOut.
    """

    def weekIndexFor(self, campaign: CampaignRecord, weekDate: date) -> int:
        """
        Full evaluation weeks between the campaign's first week and weekDate.

        Raises:
            DataIntegrityError: weekDate is before the campaign existed
        """
        firstWeek = timeMachine.weekDateFor(campaign.createdAt)
        weekIndex = (weekDate - firstWeek).days // 7

        if weekIndex < 0:
            raise DataIntegrityError(
                f"Campaign {campaign.campaignId!r} did not exist in week {weekDate} "
                f"(first week {firstWeek})"
            )
        return weekIndex

    def calculateCampaignBudget(
            self,
            campaign: CampaignRecord,
            weekIndex: int,
            totalSales,
            parentOverflowOut: Optional[Decimal] = None
    ) -> BudgetSnapshot:
        """
        Compute one campaign's weekly snapshot fields.

        Args:
            campaign: Campaign chain metadata
            weekIndex: Weeks since campaign creation (0-based)
            totalSales: Participant sales attributed to the campaign this week
            parentOverflowOut: Parent campaign's overflowOut for the same week;
                ignored (treated as 0) for a chain's first campaign

        Raises:
            DataIntegrityError: negative sales or week index, or a parent
                campaign whose snapshot for this week was not supplied
        """
        sales = toDecimal(totalSales)

        if sales < 0:
            raise DataIntegrityError(
                f"Campaign {campaign.campaignId!r} has negative totalSales {sales}"
            )
        if weekIndex < 0:
            raise DataIntegrityError(
                f"Campaign {campaign.campaignId!r} has negative week index {weekIndex}"
            )

        if campaign.hasParent:
            if parentOverflowOut is None:
                raise DataIntegrityError(
                    f"Campaign {campaign.campaignId!r} needs the snapshot of parent "
                    f"{campaign.parentCampaignId!r} for the same week"
                )
            overflowIn = roundMoney(parentOverflowOut)
            if overflowIn < 0:
                raise DataIntegrityError(
                    f"Parent {campaign.parentCampaignId!r} reported negative overflow {overflowIn}"
                )
        else:
            overflowIn = ZERO

        isInitialPeriod = weekIndex < CAMPAIGN_INITIAL_WEEKS

        if isInitialPeriod:
            baseBudget = roundMoney(CAMPAIGN_INITIAL_BUDGET)
        else:
            baseBudget = roundMoney(sales / CAMPAIGN_SALES_DIVISOR)

        cappedBudget = min(baseBudget, roundMoney(CAMPAIGN_BUDGET_CAP))
        overflowOut = max(baseBudget - CAMPAIGN_BUDGET_CAP, ZERO)
        totalBudget = cappedBudget + overflowIn

        snapshot = BudgetSnapshot(
            campaignId=campaign.campaignId,
            weekIndex=weekIndex,
            totalSales=roundMoney(sales),
            isInitialPeriod=isInitialPeriod,
            baseBudget=baseBudget,
            cappedBudget=cappedBudget,
            overflowIn=overflowIn,
            overflowOut=roundMoney(overflowOut),
            totalBudget=totalBudget,
            needsChildCampaign=overflowOut > 0 and campaign.childCampaignId is None,
        )

        logger.debug(
            f"Campaign {campaign.campaignId} week {weekIndex}: sales={snapshot.totalSales}, "
            f"base={baseBudget}, capped={cappedBudget}, in={overflowIn}, out={snapshot.overflowOut}"
        )
        return snapshot

    def validateSnapshotSeries(
            self,
            campaign: CampaignRecord,
            weekDates: Iterable[date],
            upToWeek: date
    ) -> None:
        """
        Require a snapshot for every week of the campaign's life before upToWeek.

        Raises:
            DataIntegrityError: listing the missing weeks
        """
        present = set(weekDates)
        expected = timeMachine.weekDateFor(campaign.createdAt)
        missing = []

        while expected < upToWeek:
            if expected not in present:
                missing.append(expected.isoformat())
            expected += timedelta(days=7)

        if missing:
            raise DataIntegrityError(
                f"Campaign {campaign.campaignId!r} is missing weekly snapshots for {missing}"
            )

    def calculateChainWeek(
            self,
            chain: List[CampaignRecord],
            weekDate: date,
            salesByCampaign: Dict[Hashable, Decimal]
    ) -> List[BudgetSnapshot]:
        """
        Compute one week for a whole chain, feeding each overflowOut to the child.

        CLOSED campaigns get no snapshot and pass no overflow to their child.

        Args:
            chain: Campaigns of one chain (any order; sorted by chainPosition)
            weekDate: Evaluation week
            salesByCampaign: totalSales for every non-closed campaign in chain

        Returns:
            Snapshots in chain order

        Raises:
            DataIntegrityError: broken links or missing sales figures
        """
        ordered = sorted(chain, key=lambda c: c.chainPosition)
        self._validateLinks(ordered)

        snapshots: List[BudgetSnapshot] = []
        parentOverflow: Optional[Decimal] = None

        for campaign in ordered:
            if campaign.status == CampaignStatus.CLOSED.value:
                logger.debug(f"Campaign {campaign.campaignId} is closed, no snapshot")
                parentOverflow = ZERO
                continue

            if campaign.campaignId not in salesByCampaign:
                raise DataIntegrityError(
                    f"No sales figure supplied for campaign {campaign.campaignId!r} week {weekDate}"
                )

            snapshot = self.calculateCampaignBudget(
                campaign,
                self.weekIndexFor(campaign, weekDate),
                salesByCampaign[campaign.campaignId],
                parentOverflow if campaign.hasParent else None,
            )
            snapshots.append(snapshot)
            parentOverflow = snapshot.overflowOut

        return snapshots

    @staticmethod
    def _validateLinks(ordered: List[CampaignRecord]) -> None:
        for previous, current in zip(ordered, ordered[1:]):
            if current.chainPosition != previous.chainPosition + 1:
                raise DataIntegrityError(
                    f"Chain gap between positions {previous.chainPosition} and {current.chainPosition}"
                )
            if current.parentCampaignId != previous.campaignId:
                raise DataIntegrityError(
                    f"Campaign {current.campaignId!r} is not linked to {previous.campaignId!r}"
                )
