# tests/test_agent_context.py
"""
Tests for the per-agent context aggregation.

Run:
    pytest tests/test_agent_context.py -v
"""
from datetime import date
from decimal import Decimal

import pytest

from models import Sale, WeeklyCommission
from llave_system.errors import DataIntegrityError
from llave_system.services.agent_context_service import AgentContextService
from llave_system.services.campaign_service import CampaignService
from llave_system.services.weekly_recompute_service import WeeklyRecomputeService

LAST_CLOSED = date(2024, 12, 4)


@pytest.fixture
def network(add_agents):
    return add_agents([
        (1, None, 18500, "María García"),
        (2, 1, 16200, "Carlos Rodríguez"),
        (3, 1, 12800, "Ana Martínez"),
        (4, 2, 8500, "Laura Sánchez"),
    ])


@pytest.fixture
def context_service(session):
    return AgentContextService(session)


class TestBuildAgentContext:
    """Key, team, commissions, campaigns and funnel in one dict."""

    def test_key_and_team(self, context_service, network):
        context = context_service.buildAgentContext(1)

        assert context["name"] == "María García"
        assert context["hasKey"] is True
        assert context["keyStatus"] == "active"
        assert context["llavePercentage"] == 123
        assert context["daysUntilEvaluation"] == 5
        assert context["settledWeekDate"] == "2024-12-04"
        assert context["team"]["hijos"] == {"total": 2, "withLlave": 1}
        assert context["team"]["nietos"] == {"total": 1, "withLlave": 0}

    def test_missing_for_key(self, context_service, network):
        context = context_service.buildAgentContext(3)

        assert context["hasKey"] is False
        assert context["keyStatus"] == "at_risk"
        assert context["missingForKey"] == Decimal("2200.00")

    def test_live_commissions_before_settlement(self, context_service, network):
        """TEST: no stored row -> computed from the directory (4050*8% + 3200*8% + 2125*12%)."""
        commissions = context_service.buildAgentContext(1)["commissions"]

        assert commissions["fromChildren"] == Decimal("580.00")
        assert commissions["fromGrandchildren"] == Decimal("255.00")
        assert commissions["total"] == Decimal("835.00")

    def test_stored_commissions_preferred(self, session, context_service, network):
        session.add(WeeklyCommission(
            agentID=1,
            weekDate=LAST_CLOSED,
            hadKey=True,
            fromChildren=Decimal("10.00"),
            fromGrandchildren=Decimal("0"),
            fromGreatGrandchildren=Decimal("0"),
            total=Decimal("10.00"),
        ))
        session.flush()

        assert context_service.buildAgentContext(1)["commissions"]["total"] == Decimal("10.00")

    async def test_campaigns_after_settlement(self, session, context_service, network):
        await WeeklyRecomputeService(session).runWeek(LAST_CLOSED)
        maria = CampaignService(session).getUserCampaignsAsOwner(1)[0]
        await CampaignService(session).addParticipant(maria.campaignID, 1, 3)

        owner = context_service.buildAgentContext(1)["campaigns"]
        guest = context_service.buildAgentContext(3)["campaigns"]

        assert owner == {"owned": 1, "participating": 0, "totalBudget": Decimal("200.00")}
        assert guest["participating"] == 1
        assert guest["owned"] == 0

    def test_team_at_risk(self, context_service, network):
        flagged = context_service.buildAgentContext(1)["teamAtRisk"]

        assert [(m["name"], m["status"]) for m in flagged] == [("Ana Martínez", "at_risk")]

    def test_funnel(self, session, context_service, network):
        session.add_all([
            Sale(userID=1, amount=Decimal("1000"), status="PROSPECTO"),
            Sale(userID=1, amount=Decimal("2000"), status="PROSPECTO"),
            Sale(userID=1, amount=Decimal("899"), status="INSTALADO"),
            Sale(userID=2, amount=Decimal("500"), status="INSTALADO"),
        ])
        session.flush()

        funnel = context_service.buildAgentContext(1)["funnel"]

        assert funnel["prospectos"] == {"count": 2, "value": Decimal("3000")}
        assert funnel["instalados"] == {"count": 1, "value": Decimal("899")}
        assert funnel["cotizados"] == {"count": 0, "value": Decimal("0")}

    def test_unknown_agent(self, context_service, network):
        with pytest.raises(DataIntegrityError):
            context_service.buildAgentContext(99)
