# llave_system/services/weekly_recompute_service.py
"""
Weekly recompute - the Wednesday pass over the whole directory.

Order of work:
1. Load and validate the directory snapshot
2. Evaluate the Key for every agent (first Key opens a root campaign)
3. Upsert WeeklyCommission for every agent
4. Compute every campaign chain for the week and upsert snapshots

Running the same week twice yields the same rows.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from sqlalchemy.orm import Session
import logging

from models.agent import Agent
from models.campaign import Campaign
from models.campaign_snapshot import CampaignWeeklySnapshot
from models.commission import WeeklyCommission
from llave_system.config.rules import CampaignStatus
from llave_system.errors import DataIntegrityError
from llave_system.events.event_bus import eventBus, LlaveEvents
from llave_system.services.campaign_budget_service import CampaignBudgetCalculator
from llave_system.services.campaign_service import CampaignService
from llave_system.services.commission_service import CommissionCalculator
from llave_system.services.directory_loader import DirectoryLoader
from llave_system.services.eligibility_service import evaluateEligibility
from llave_system.types import AgentRecord, BudgetSnapshot, CampaignRecord, CommissionBreakdown
from llave_system.utils.money import ZERO
from llave_system.utils.time_machine import timeMachine
from llave_system.utils.week_locks import weekLocks

logger = logging.getLogger(__name__)


class WeeklyRecomputeService:
    """Runs one evaluation week end to end against the store."""

    def __init__(self, session: Session):
        self.session = session
        self.campaignService = CampaignService(session)
        self.budgetCalculator = CampaignBudgetCalculator()

    async def runWeek(self, weekDate: Optional[date] = None) -> Dict[str, Any]:
        """
        Recompute Key status, commissions and campaign budgets for one week.

        Args:
            weekDate: Evaluation Wednesday (local date) of the week to settle;
                the last closed week if None

        Returns:
            Stats dict of the pass

        Raises:
            ValidationError: malformed agent row
            DataIntegrityError: broken directory, chain or snapshot series
        """
        weekDate = weekDate or timeMachine.lastClosedWeekDate
        weekId = weekDate.isoformat()
        weekStart, _ = timeMachine.weekBounds(weekDate)
        # SQLite stores naive UTC
        weekStart = weekStart.replace(tzinfo=None)

        logger.info("=" * 60)
        logger.info(f"WEEKLY RECOMPUTE {weekId}")
        logger.info("=" * 60)

        stats = {
            "weekDate": weekId,
            "agentsEvaluated": 0,
            "agentsWithKey": 0,
            "keysAcquired": 0,
            "keysLost": 0,
            "commissionsWritten": 0,
            "totalCommissions": ZERO,
            "snapshotsWritten": 0,
            "campaignsCreated": 0,
        }

        loader = DirectoryLoader(self.session)
        index = loader.loadIndex()
        agents = loader.loadModels()

        # Step 1: Key evaluation
        for record in index.agents():
            await self._evaluateKey(agents[record.agentId], record, weekDate, weekStart, stats)
        self.session.flush()
        logger.info(f"✓ Key evaluated: {stats['agentsWithKey']}/{stats['agentsEvaluated']} agents hold it")

        # Step 2: commissions
        calculator = CommissionCalculator(index)
        for record in index.agents():
            breakdown = calculator.calculateCommissions(record.agentId)
            self._upsertCommission(record.agentId, weekDate, agents[record.agentId].hasKey, breakdown)
            stats["commissionsWritten"] += 1
            stats["totalCommissions"] += breakdown.total

            if breakdown.total > 0:
                await eventBus.emit(LlaveEvents.COMMISSION_CALCULATED, {
                    "agentId": record.agentId,
                    "weekDate": weekId,
                    **breakdown.asDict(),
                })
        self.session.flush()
        logger.info(f"✓ Commissions written: {stats['commissionsWritten']} (total {stats['totalCommissions']})")

        # Step 3: campaign chains
        ownerIds = [
            row[0] for row in self.session.query(Campaign.ownerID).distinct().order_by(Campaign.ownerID)
        ]
        try:
            for ownerId in ownerIds:
                async with weekLocks.lockFor(ownerId, weekId):
                    await self._recomputeOwner(ownerId, weekDate, weekStart, stats)
        finally:
            weekLocks.releaseWeek(weekId)
        self.session.flush()
        logger.info(
            f"✓ Campaigns: {stats['snapshotsWritten']} snapshots, "
            f"{stats['campaignsCreated']} campaigns created"
        )

        await eventBus.emit(LlaveEvents.WEEK_RECOMPUTED, dict(stats))
        return stats

    # ═══════════════════════════════════════════════════════════════════
    # KEY EVALUATION
    # ═══════════════════════════════════════════════════════════════════

    async def _evaluateKey(
            self,
            agent: Agent,
            record: AgentRecord,
            weekDate: date,
            weekStart: datetime,
            stats: Dict[str, Any]
    ):
        hadKey = bool(agent.hasKey)
        hasKey = evaluateEligibility(record.sales30d)
        alreadyEvaluated = agent.lastEvaluatedWeek == weekDate

        stats["agentsEvaluated"] += 1
        if hasKey:
            stats["agentsWithKey"] += 1

        agent.hasKey = hasKey
        agent.lastEvaluatedWeek = weekDate

        if hasKey:
            firstTime = agent.keyAcquiredAt is None
            if firstTime:
                agent.keyAcquiredAt = weekStart

            campaign, created = await self.campaignService.ensureRootCampaign(agent, createdAt=weekStart)
            if created:
                stats["campaignsCreated"] += 1
                await eventBus.emit(LlaveEvents.CAMPAIGN_CREATED, {
                    "campaignId": campaign.campaignID,
                    "ownerId": agent.agentID,
                    "chainPosition": campaign.chainPosition,
                    "weekDate": weekDate.isoformat(),
                })

            if not hadKey and not alreadyEvaluated:
                stats["keysAcquired"] += 1
                await eventBus.emit(LlaveEvents.KEY_ACQUIRED, {
                    "agentId": agent.agentID,
                    "weekDate": weekDate.isoformat(),
                    "sales30d": record.sales30d,
                    "firstTime": firstTime,
                })

        elif hadKey and not alreadyEvaluated:
            stats["keysLost"] += 1
            await eventBus.emit(LlaveEvents.KEY_LOST, {
                "agentId": agent.agentID,
                "weekDate": weekDate.isoformat(),
                "sales30d": record.sales30d,
            })

    # ═══════════════════════════════════════════════════════════════════
    # COMMISSIONS
    # ═══════════════════════════════════════════════════════════════════

    def _upsertCommission(
            self,
            agentId: int,
            weekDate: date,
            hadKey: bool,
            breakdown: CommissionBreakdown
    ) -> WeeklyCommission:
        commission = self.session.query(WeeklyCommission).filter_by(
            agentID=agentId,
            weekDate=weekDate
        ).first()

        if not commission:
            commission = WeeklyCommission(agentID=agentId, weekDate=weekDate)
            self.session.add(commission)

        commission.hadKey = hadKey
        commission.fromChildren = breakdown.fromChildren
        commission.fromGrandchildren = breakdown.fromGrandchildren
        commission.fromGreatGrandchildren = breakdown.fromGreatGrandchildren
        commission.total = breakdown.total
        return commission

    # ═══════════════════════════════════════════════════════════════════
    # CAMPAIGN CHAINS
    # ═══════════════════════════════════════════════════════════════════

    def _existingChain(self, chain: List[Campaign], weekDate: date) -> List[Campaign]:
        """Prefix of the chain that already existed in weekDate."""
        existing = []
        for campaign in chain:
            if timeMachine.weekDateFor(campaign.createdAt) > weekDate:
                break
            existing.append(campaign)
        return existing

    async def _recomputeOwner(
            self,
            ownerId: int,
            weekDate: date,
            weekStart: datetime,
            stats: Dict[str, Any]
    ):
        for chain in self.campaignService.getOwnerChains(ownerId):
            await self._recomputeChain(chain[0].campaignID, weekDate, weekStart, stats)

    async def _recomputeChain(
            self,
            rootCampaignId: int,
            weekDate: date,
            weekStart: datetime,
            stats: Dict[str, Any]
    ):
        # Validated once, before this week adds its own snapshots
        for campaign in self._existingChain(self.campaignService.getChain(rootCampaignId), weekDate):
            if campaign.status == CampaignStatus.CLOSED.value:
                continue
            weekDates = [s.weekDate for s in self.campaignService.getCampaignSnapshots(campaign.campaignID)]
            self.budgetCalculator.validateSnapshotSeries(CampaignRecord.fromModel(campaign), weekDates, weekDate)

        # A new child joins the chain in its initial period, so this settles after one extra round
        while True:
            chain = self._existingChain(self.campaignService.getChain(rootCampaignId), weekDate)
            records = [CampaignRecord.fromModel(c) for c in chain]
            sales = {
                c.campaignID: self.campaignService.getWeeklySales(c.campaignID, weekDate)
                for c in chain
                if c.status != CampaignStatus.CLOSED.value
            }

            snapshots = self.budgetCalculator.calculateChainWeek(records, weekDate, sales)
            overflowing = [s for s in snapshots if s.needsChildCampaign]
            if not overflowing:
                break

            byId = {c.campaignID: c for c in chain}
            for snapshot in overflowing:
                child = await self.campaignService.createChildCampaign(byId[snapshot.campaignId], createdAt=weekStart)
                stats["campaignsCreated"] += 1
                await eventBus.emit(LlaveEvents.CAMPAIGN_CREATED, {
                    "campaignId": child.campaignID,
                    "ownerId": child.ownerID,
                    "chainPosition": child.chainPosition,
                    "weekDate": weekDate.isoformat(),
                })

        byId = {c.campaignID: c for c in chain}
        self._checkLaterChildren(snapshots, byId, weekDate)

        for snapshot in snapshots:
            self._upsertSnapshot(snapshot, weekDate)
            stats["snapshotsWritten"] += 1
            await eventBus.emit(LlaveEvents.SNAPSHOT_COMPUTED, {
                "weekDate": weekDate.isoformat(),
                **snapshot.asDict(),
            })

            if snapshot.overflowOut > 0:
                child = byId.get(byId[snapshot.campaignId].childCampaignID)
                if child is not None and child.status == CampaignStatus.CLOSED.value:
                    logger.warning(
                        f"Campaign {snapshot.campaignId} overflow {snapshot.overflowOut} dropped: "
                        f"child campaign {child.campaignID} is closed"
                    )
                    continue

                await eventBus.emit(LlaveEvents.CAMPAIGN_OVERFLOWED, {
                    "campaignId": snapshot.campaignId,
                    "overflowOut": snapshot.overflowOut,
                    "childCampaignId": byId[snapshot.campaignId].childCampaignID,
                    "weekDate": weekDate.isoformat(),
                })

    def _checkLaterChildren(self, snapshots: List[BudgetSnapshot], byId: Dict[int, Campaign], weekDate: date):
        """Overflow into a child opened after weekDate has nowhere to go in this week."""
        for snapshot in snapshots:
            childId = byId[snapshot.campaignId].childCampaignID
            if snapshot.overflowOut <= 0 or childId is None or childId in byId:
                continue

            child = self.campaignService.getCampaign(childId)
            childWeek = timeMachine.weekDateFor(child.createdAt)
            raise DataIntegrityError(
                f"Campaign {snapshot.campaignId} overflows {snapshot.overflowOut} in week {weekDate} "
                f"but its child campaign {childId} only opened in week {childWeek}"
            )

    def _upsertSnapshot(self, computed: BudgetSnapshot, weekDate: date) -> CampaignWeeklySnapshot:
        snapshot = self.campaignService.getSnapshot(computed.campaignId, weekDate)

        if not snapshot:
            snapshot = CampaignWeeklySnapshot(campaignID=computed.campaignId, weekDate=weekDate)
            self.session.add(snapshot)

        snapshot.totalSales = computed.totalSales
        snapshot.isInitialPeriod = computed.isInitialPeriod
        snapshot.baseBudget = computed.baseBudget
        snapshot.cappedBudget = computed.cappedBudget
        snapshot.overflowIn = computed.overflowIn
        snapshot.overflowOut = computed.overflowOut
        snapshot.totalBudget = computed.totalBudget
        return snapshot
