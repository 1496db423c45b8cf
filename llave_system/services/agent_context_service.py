# llave_system/services/agent_context_service.py
"""
Agent context - everything the dashboard or assistant shows about one agent,
gathered into a plain dict.
"""
from typing import Any, Dict
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from models.commission import WeeklyCommission
from models.sale import Sale
from llave_system.config.rules import SaleStatus
from llave_system.services.campaign_service import CampaignService
from llave_system.services.commission_service import CommissionCalculator
from llave_system.services.directory_loader import DirectoryLoader
from llave_system.services.eligibility_service import (
    evaluateEligibility,
    getKeyStatus,
    getLlavePercentage,
    getMissingForKey,
)
from llave_system.services.team_service import TeamService
from llave_system.types import CommissionBreakdown
from llave_system.utils.money import toDecimal
from llave_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


class AgentContextService:
    """Read-only aggregation over the store for one agent."""

    def __init__(self, session: Session):
        self.session = session
        self.campaignService = CampaignService(session)

    def buildAgentContext(self, agentId: int) -> Dict[str, Any]:
        """
        Build the context of one agent.

        Commissions and budget come from the last settled week; Key and team
        figures are live.

        Raises:
            DataIntegrityError: unknown agent or broken directory
        """
        index = DirectoryLoader(self.session).loadIndex()
        agent = index.require(agentId)
        teamService = TeamService(index)
        weekDate = timeMachine.lastClosedWeekDate

        context = {
            "agentId": agent.agentId,
            "name": agent.name,
            "hasKey": evaluateEligibility(agent.sales30d),
            "keyStatus": getKeyStatus(agent.sales30d).value,
            "sales30d": agent.sales30d,
            "llavePercentage": getLlavePercentage(agent.sales30d),
            "missingForKey": getMissingForKey(agent.sales30d),
            "settledWeekDate": weekDate.isoformat(),
            "daysUntilEvaluation": timeMachine.daysUntilEvaluation,
            "team": teamService.getTeamSummary(agentId),
            "commissions": self._commissionsFor(index, agentId, weekDate).asDict(),
            "campaigns": {
                "owned": len(self.campaignService.getUserCampaignsAsOwner(agentId)),
                "participating": len(self.campaignService.getUserCampaignsAsParticipant(agentId)),
                "totalBudget": self.campaignService.getUserTotalBudgetThisWeek(agentId, weekDate),
            },
            "funnel": self.getFunnelStats(agentId),
            "teamAtRisk": teamService.getTeamAtRisk(agentId),
        }

        logger.debug(f"Built context for agent {agentId} (settled week {context['settledWeekDate']})")
        return context

    def _commissionsFor(self, index, agentId: int, weekDate) -> CommissionBreakdown:
        """Stored figure when the week was settled, live calculation otherwise."""
        stored = self.session.query(WeeklyCommission).filter_by(
            agentID=agentId,
            weekDate=weekDate
        ).first()

        if stored:
            return CommissionBreakdown(
                total=toDecimal(stored.total),
                fromChildren=toDecimal(stored.fromChildren),
                fromGrandchildren=toDecimal(stored.fromGrandchildren),
                fromGreatGrandchildren=toDecimal(stored.fromGreatGrandchildren),
            )
        return CommissionCalculator(index).calculateCommissions(agentId)

    def getFunnelStats(self, agentId: int) -> Dict[str, Dict[str, Any]]:
        """
        Count and value of the agent's own sales per funnel stage.

        Returns:
            {"prospectos": {"count": 2, "value": Decimal("3000.00")}, "cotizados": ..., ...}
        """
        rows = self.session.query(
            Sale.status,
            func.count(Sale.saleID),
            func.coalesce(func.sum(Sale.amount), 0)
        ).filter(
            Sale.userID == agentId
        ).group_by(Sale.status).all()

        byStatus = {status: (count, value) for status, count, value in rows}

        funnel = {}
        for status in SaleStatus:
            count, value = byStatus.get(status.value, (0, 0))
            funnel[f"{status.value.lower()}s"] = {"count": count, "value": toDecimal(value)}
        return funnel
