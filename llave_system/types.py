# llave_system/types.py
"""
Immutable records the pure calculators operate on.

The store models (models/*) are converted into these at the boundary so
that the calculation core never touches a session or mutable ORM state.
"""
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Hashable, Optional

from llave_system.config.rules import Generation
from llave_system.utils.money import ZERO


@dataclass(frozen=True)
class AgentRecord:
    """One agent of the directory: id, referrer and trailing 30-day sales."""
    agentId: Hashable
    parentId: Optional[Hashable]
    sales30d: Decimal
    name: Optional[str] = None


@dataclass(frozen=True)
class CampaignRecord:
    """Campaign chain metadata needed by the budget calculator."""
    campaignId: Hashable
    ownerId: Hashable
    chainPosition: int
    createdAt: datetime
    parentCampaignId: Optional[Hashable] = None
    childCampaignId: Optional[Hashable] = None
    status: str = "ACTIVE"
    initialPeriodEndsAt: Optional[datetime] = None

    @property
    def hasParent(self) -> bool:
        return self.parentCampaignId is not None

    @classmethod
    def fromModel(cls, campaign) -> "CampaignRecord":
        """Build from a models.Campaign row."""
        return cls(
            campaignId=campaign.campaignID,
            ownerId=campaign.ownerID,
            chainPosition=campaign.chainPosition,
            createdAt=campaign.createdAt,
            parentCampaignId=campaign.parentCampaignID,
            childCampaignId=campaign.childCampaignID,
            status=campaign.status,
            initialPeriodEndsAt=campaign.initialPeriodEndsAt,
        )


@dataclass(frozen=True)
class CommissionBreakdown:
    """Weekly downline commission of one agent, split by generation."""
    total: Decimal
    fromChildren: Decimal
    fromGrandchildren: Decimal
    fromGreatGrandchildren: Decimal

    @classmethod
    def zero(cls) -> "CommissionBreakdown":
        return cls(total=ZERO, fromChildren=ZERO, fromGrandchildren=ZERO, fromGreatGrandchildren=ZERO)

    def asDict(self) -> Dict[str, Decimal]:
        return asdict(self)


@dataclass(frozen=True)
class BudgetSnapshot:
    """Computed weekly budget fields of one campaign."""
    campaignId: Hashable
    weekIndex: int
    totalSales: Decimal
    isInitialPeriod: bool
    baseBudget: Decimal
    cappedBudget: Decimal
    overflowIn: Decimal
    overflowOut: Decimal
    totalBudget: Decimal
    needsChildCampaign: bool = False

    def asDict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TeamMember:
    """A downline member as seen from a viewing agent."""
    agent: AgentRecord
    generation: Generation
    depth: int
    hasKey: bool

    @property
    def relationship(self) -> str:
        return self.generation.label
