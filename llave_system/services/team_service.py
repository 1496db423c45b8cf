# llave_system/services/team_service.py
"""
Team views over the downline: generations, Key counts, members to watch.
"""
from typing import Dict, Hashable, List
import logging

from llave_system.config.rules import Generation, MAX_COMMISSION_DEPTH, TEAM_AT_RISK_LIMIT
from llave_system.services.commission_service import generationFor
from llave_system.services.eligibility_service import classifyMemberActivity, evaluateEligibility
from llave_system.types import AgentRecord, TeamMember
from llave_system.utils.downline_index import DownlineIndex

logger = logging.getLogger(__name__)


class TeamService:
    """Read-only team queries for one DownlineIndex."""

    def __init__(self, index: DownlineIndex):
        self.index = index

    def _member(self, agent: AgentRecord, depth: int) -> TeamMember:
        return TeamMember(
            agent=agent,
            generation=generationFor(depth),
            depth=depth,
            hasKey=evaluateEligibility(agent.sales30d),
        )

    def getTeam(self, viewerId: Hashable) -> Dict[Generation, List[TeamMember]]:
        """Hijos, nietos and bisnietos of the viewer (commission range only)."""
        generations = self.index.getGenerations(viewerId, MAX_COMMISSION_DEPTH)
        return {
            generationFor(depth): [self._member(agent, depth) for agent in members]
            for depth, members in generations.items()
        }

    def getAllTeamMembers(self, viewerId: Hashable) -> List[TeamMember]:
        """Whole downline including tataranietos (display only)."""
        members: List[TeamMember] = []

        def collect(agent, depth, path):
            members.append(self._member(agent, depth))

        self.index.walkDownline(viewerId, collect)
        return members

    def getTeamSummary(self, viewerId: Hashable) -> Dict[str, Dict[str, int]]:
        """
        Member and Key counts per generation.

        Returns:
            {"hijos": {"total": 2, "withLlave": 1}, "nietos": {...}, "bisnietos": {...}}
        """
        summary = {}
        for generation, members in self.getTeam(viewerId).items():
            summary[f"{generation.label}s"] = {
                "total": len(members),
                "withLlave": sum(1 for m in members if m.hasKey),
            }
        return summary

    def getTeamAtRisk(self, viewerId: Hashable, limit: int = TEAM_AT_RISK_LIMIT) -> List[Dict]:
        """
        Members worth a nudge: at risk of losing the Key, close to it, or barely selling.

        Ordered by generation then directory order, truncated to limit.
        """
        flagged = []
        for generation, members in self.getTeam(viewerId).items():
            for member in members:
                status = classifyMemberActivity(member.agent.sales30d)
                if status is None:
                    continue
                flagged.append({
                    "agentId": member.agent.agentId,
                    "name": member.agent.name,
                    "relationship": member.relationship,
                    "sales30d": member.agent.sales30d,
                    "status": status,
                })

        logger.debug(f"Team at risk for {viewerId}: {len(flagged)} flagged")
        return flagged[:limit]
