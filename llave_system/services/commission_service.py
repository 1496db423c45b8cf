# llave_system/services/commission_service.py
"""
Commission calculation service - weekly downline commissions under the chain rule.
"""
from decimal import Decimal
from typing import Dict, Hashable, Iterable, Tuple
import logging

from llave_system.config.rules import (
    Generation,
    GENERATION_RATES,
    MAX_COMMISSION_DEPTH,
    WEEKS_PER_30_DAYS,
)
from llave_system.services.eligibility_service import evaluateEligibility
from llave_system.types import AgentRecord, CommissionBreakdown
from llave_system.utils.downline_index import DownlineIndex
from llave_system.utils.money import ZERO, roundMoney, toDecimal

logger = logging.getLogger(__name__)


def weeklySalesFor(agent: AgentRecord) -> Decimal:
    """
    Approximate this week's sales from the trailing 30-day figure.

    Fixed proxy sales30d / 4, kept behind one function so a real weekly
    ledger aggregate can replace it.
    """
    return toDecimal(agent.sales30d) / WEEKS_PER_30_DAYS


def generationFor(relativeDepth: int) -> Generation:
    """Map tree distance to a generation; 0, negatives and >= 4 are BEYOND."""
    try:
        generation = Generation(relativeDepth)
    except ValueError:
        return Generation.BEYOND
    return generation


def getCommissionRate(memberLevel: int, viewerLevel: int) -> Decimal:
    """Rate earned by the viewer on a member, from their absolute levels."""
    return GENERATION_RATES[generationFor(memberLevel - viewerLevel)]


def getRelativeLevelLabel(memberLevel: int, viewerLevel: int) -> str:
    """'hijo', 'nieto', 'bisnieto' or 'tataranieto'."""
    return generationFor(memberLevel - viewerLevel).label


def isWithinCommissionRange(memberLevel: int, viewerLevel: int) -> bool:
    return 1 <= memberLevel - viewerLevel <= MAX_COMMISSION_DEPTH


class CommissionCalculator:
    """
    Pure calculator over one DownlineIndex.

    Rules:
    - Viewer without the Key earns nothing (outermost gate)
    - Hijos (depth 1): 8% of weekly sales, no chain requirement
    - Nietos (depth 2): 12%, only if the connecting hijo holds the Key
    - Bisnietos (depth 3): 20%, only if connecting hijo AND nieto hold the Key
    - Depth >= 4: never, traversal stops at depth 3

    Example (viewer active, sales30d=20000):
    - Hijo C (16000, active): 4000/week * 8% = 320.00
    - Nieto G under C (8000): 2000/week * 12% = 240.00
    - Total: 560.00
    If C drops to 5000: hijo pays 100.00, nieto pays 0 (chain broken at C).
    """

    def __init__(self, index: DownlineIndex):
        self.index = index

    def calculateCommissions(self, viewerId: Hashable) -> CommissionBreakdown:
        """
        Compute the weekly commission of viewerId, broken down by generation.

        Raises:
            DataIntegrityError: viewerId is not in the directory
        """
        viewer = self.index.require(viewerId)

        if not evaluateEligibility(viewer.sales30d):
            logger.debug(f"Agent {viewerId} has no Key, commissions are zero")
            return CommissionBreakdown.zero()

        subtotals: Dict[Generation, Decimal] = {
            Generation.DIRECT: ZERO,
            Generation.GRANDCHILD: ZERO,
            Generation.GREAT_GRANDCHILD: ZERO,
        }

        def accumulate(member: AgentRecord, depth: int, path: Tuple[Hashable, ...]) -> None:
            generation = generationFor(depth)
            if generation is Generation.BEYOND:
                return

            # Chain rule: every connecting ancestor must hold the Key
            for ancestorId in path:
                if not evaluateEligibility(self.index.require(ancestorId).sales30d):
                    return

            subtotals[generation] += weeklySalesFor(member) * GENERATION_RATES[generation]

        self.index.walkDownline(viewerId, accumulate, maxDepth=MAX_COMMISSION_DEPTH)

        fromChildren = roundMoney(subtotals[Generation.DIRECT])
        fromGrandchildren = roundMoney(subtotals[Generation.GRANDCHILD])
        fromGreatGrandchildren = roundMoney(subtotals[Generation.GREAT_GRANDCHILD])

        breakdown = CommissionBreakdown(
            total=fromChildren + fromGrandchildren + fromGreatGrandchildren,
            fromChildren=fromChildren,
            fromGrandchildren=fromGrandchildren,
            fromGreatGrandchildren=fromGreatGrandchildren,
        )

        logger.debug(
            f"Commissions for {viewerId}: hijos={fromChildren}, nietos={fromGrandchildren}, "
            f"bisnietos={fromGreatGrandchildren}, total={breakdown.total}"
        )
        return breakdown

    def calculateAll(self) -> Dict[Hashable, CommissionBreakdown]:
        """Commissions for every agent in the index."""
        return {agent.agentId: self.calculateCommissions(agent.agentId) for agent in self.index.agents()}


def calculateCommissions(viewerId: Hashable, allUsers: Iterable[AgentRecord]) -> CommissionBreakdown:
    """
    Convenience entry point: build the index and compute one viewer.

    Raises:
        DataIntegrityError: cyclic/dangling parent graph or unknown viewer
    """
    index = allUsers if isinstance(allUsers, DownlineIndex) else DownlineIndex(allUsers)
    return CommissionCalculator(index).calculateCommissions(viewerId)

