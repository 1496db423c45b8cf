# llave_system/services/campaign_service.py
"""
Campaign service - campaign chains, participants and sale attribution.
Changes are flushed, not committed; the caller owns the transaction.
"""
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Tuple
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from models.agent import Agent
from models.campaign import Campaign, CampaignParticipant
from models.campaign_snapshot import CampaignWeeklySnapshot
from models.sale import Sale
from llave_system.config.rules import (
    CampaignStatus,
    ParticipantRole,
    SaleStatus,
    CAMPAIGN_INITIAL_WEEKS,
    CAMPAIGN_MAX_PARTICIPANTS,
)
from llave_system.errors import (
    CampaignFullError,
    DataIntegrityError,
    NotCampaignOwnerError,
    ValidationError,
)
from llave_system.utils.money import ZERO, toDecimal
from llave_system.utils.time_machine import timeMachine, asUtc

logger = logging.getLogger(__name__)


class CampaignService:
    """Service for managing campaign chains and their participants."""

    def __init__(self, session: Session):
        self.session = session

    # ═══════════════════════════════════════════════════════════════════
    # LOOKUPS
    # ═══════════════════════════════════════════════════════════════════

    def getCampaign(self, campaignId: int) -> Campaign:
        campaign = self.session.query(Campaign).filter_by(campaignID=campaignId).first()
        if not campaign:
            raise DataIntegrityError(f"Campaign {campaignId} not found")
        return campaign

    def getChain(self, rootCampaignId: int) -> List[Campaign]:
        """
        Campaigns of one chain, root first, following child links.

        Raises:
            DataIntegrityError: broken or looping child links
        """
        chain = []
        seen = set()
        current = self.getCampaign(rootCampaignId)

        while current is not None:
            if current.campaignID in seen:
                raise DataIntegrityError(f"Campaign chain loops at {current.campaignID}")
            seen.add(current.campaignID)
            chain.append(current)

            if current.childCampaignID is None:
                break
            child = self.getCampaign(current.childCampaignID)
            if child.parentCampaignID != current.campaignID:
                raise DataIntegrityError(
                    f"Campaign {child.campaignID} does not point back to parent {current.campaignID}"
                )
            current = child

        return chain

    def getOwnerChains(self, ownerId: int) -> List[List[Campaign]]:
        roots = self.session.query(Campaign).filter(
            Campaign.ownerID == ownerId,
            Campaign.parentCampaignID.is_(None)
        ).order_by(Campaign.campaignID).all()
        return [self.getChain(root.campaignID) for root in roots]

    def getUserCampaignsAsOwner(self, userId: int) -> List[Campaign]:
        return self.session.query(Campaign).filter(
            Campaign.ownerID == userId
        ).order_by(Campaign.chainPosition, Campaign.campaignID).all()

    def getUserCampaignsAsParticipant(self, userId: int) -> List[Campaign]:
        """Campaigns the user joined as a guest (active membership only)."""
        return self.session.query(Campaign).join(
            CampaignParticipant,
            CampaignParticipant.campaignID == Campaign.campaignID
        ).filter(
            CampaignParticipant.userID == userId,
            CampaignParticipant.role == ParticipantRole.PARTICIPANT.value,
            CampaignParticipant.removedAt.is_(None)
        ).order_by(Campaign.campaignID).all()

    def getActiveParticipants(self, campaignId: int) -> List[CampaignParticipant]:
        return self.session.query(CampaignParticipant).filter(
            CampaignParticipant.campaignID == campaignId,
            CampaignParticipant.removedAt.is_(None)
        ).order_by(CampaignParticipant.participantID).all()

    def isCampaignFull(self, campaignId: int) -> bool:
        return len(self.getActiveParticipants(campaignId)) >= CAMPAIGN_MAX_PARTICIPANTS

    def getCampaignSnapshots(self, campaignId: int) -> List[CampaignWeeklySnapshot]:
        return self.session.query(CampaignWeeklySnapshot).filter_by(
            campaignID=campaignId
        ).order_by(CampaignWeeklySnapshot.weekDate).all()

    def getSnapshot(self, campaignId: int, weekDate: date) -> Optional[CampaignWeeklySnapshot]:
        return self.session.query(CampaignWeeklySnapshot).filter_by(
            campaignID=campaignId,
            weekDate=weekDate
        ).first()

    def getUserTotalBudgetThisWeek(self, userId: int, weekDate: Optional[date] = None) -> Decimal:
        """
        Sum of totalBudget over the user's own campaigns.

        Defaults to the last settled week, whose budget is the one spent now.
        """
        weekDate = weekDate or timeMachine.lastClosedWeekDate

        total = self.session.query(
            func.coalesce(func.sum(CampaignWeeklySnapshot.totalBudget), 0)
        ).join(
            Campaign,
            Campaign.campaignID == CampaignWeeklySnapshot.campaignID
        ).filter(
            Campaign.ownerID == userId,
            CampaignWeeklySnapshot.weekDate == weekDate
        ).scalar()

        return toDecimal(total)

    def getWeeklySales(self, campaignId: int, weekDate: date) -> Decimal:
        """INSTALADO sales attributed to the campaign within the evaluation week."""
        start, end = timeMachine.weekBounds(weekDate)

        # SQLite stores naive UTC
        start = start.replace(tzinfo=None)
        end = end.replace(tzinfo=None)

        total = self.session.query(
            func.coalesce(func.sum(Sale.amount), 0)
        ).filter(
            Sale.campaignID == campaignId,
            Sale.status == SaleStatus.INSTALADO.value,
            Sale.installedAt >= start,
            Sale.installedAt < end
        ).scalar()

        return toDecimal(total)

    # ═══════════════════════════════════════════════════════════════════
    # CHAIN LIFECYCLE
    # ═══════════════════════════════════════════════════════════════════

    async def ensureRootCampaign(
            self,
            agent: Agent,
            createdAt: Optional[datetime] = None
    ) -> Tuple[Campaign, bool]:
        """
        Create the agent's first campaign unless one already exists.

        Called when the agent attains the Key.

        Returns:
            (campaign, created)
        """
        existing = self.session.query(Campaign).filter(
            Campaign.ownerID == agent.agentID,
            Campaign.chainPosition == 1
        ).order_by(Campaign.campaignID).first()

        if existing:
            return existing, False

        campaign = self._newCampaign(
            ownerId=agent.agentID,
            name=f"{agent.name or agent.agentID} - Campaña 1",
            chainPosition=1,
            parentCampaignId=None,
            createdAt=createdAt,
        )

        logger.info(f"Created root campaign {campaign.campaignID} for agent {agent.agentID}")
        return campaign, True

    async def createChildCampaign(
            self,
            parent: Campaign,
            createdAt: Optional[datetime] = None
    ) -> Campaign:
        """
        Append a campaign after parent to receive its overflow.

        Raises:
            DataIntegrityError: parent already has a child
        """
        if parent.childCampaignID is not None:
            raise DataIntegrityError(
                f"Campaign {parent.campaignID} already overflows to {parent.childCampaignID}"
            )

        owner = self.session.query(Agent).filter_by(agentID=parent.ownerID).first()
        ownerName = owner.name if owner and owner.name else parent.ownerID
        position = parent.chainPosition + 1

        child = self._newCampaign(
            ownerId=parent.ownerID,
            name=f"{ownerName} - Campaña {position}",
            chainPosition=position,
            parentCampaignId=parent.campaignID,
            createdAt=createdAt,
        )
        parent.childCampaignID = child.campaignID
        self.session.flush()

        logger.info(
            f"Created child campaign {child.campaignID} (position {position}) "
            f"after {parent.campaignID} for owner {parent.ownerID}"
        )
        return child

    def _newCampaign(
            self,
            ownerId: int,
            name: str,
            chainPosition: int,
            parentCampaignId: Optional[int],
            createdAt: Optional[datetime]
    ) -> Campaign:
        createdAt = asUtc(createdAt or timeMachine.now).replace(tzinfo=None)

        campaign = Campaign(
            ownerID=ownerId,
            name=name,
            status=CampaignStatus.ACTIVE.value,
            chainPosition=chainPosition,
            parentCampaignID=parentCampaignId,
            createdAt=createdAt,
            initialPeriodEndsAt=createdAt + timedelta(weeks=CAMPAIGN_INITIAL_WEEKS),
        )
        self.session.add(campaign)
        self.session.flush()

        self.session.add(CampaignParticipant(
            campaignID=campaign.campaignID,
            userID=ownerId,
            role=ParticipantRole.OWNER.value,
            joinedAt=createdAt,
        ))
        self.session.flush()
        return campaign

    async def setStatus(self, campaignId: int, actorId: int, status: str) -> Campaign:
        """
        Change campaign status (ACTIVE, PAUSED, CLOSED). Owner only.

        Raises:
            NotCampaignOwnerError, ValidationError
        """
        campaign = self._requireOwner(campaignId, actorId)

        try:
            newStatus = CampaignStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown campaign status {status!r}")

        if campaign.status == CampaignStatus.CLOSED.value and newStatus != CampaignStatus.CLOSED:
            raise ValidationError(f"Campaign {campaignId} is closed and cannot be reopened")

        oldStatus = campaign.status
        campaign.status = newStatus.value
        self.session.flush()

        logger.info(f"Campaign {campaignId} status {oldStatus} -> {newStatus.value} by {actorId}")
        return campaign

    # ═══════════════════════════════════════════════════════════════════
    # PARTICIPANTS
    # ═══════════════════════════════════════════════════════════════════

    async def addParticipant(self, campaignId: int, actorId: int, userId: int) -> CampaignParticipant:
        """
        Invite a guest into the campaign. Owner only, max 4 active members.

        Raises:
            NotCampaignOwnerError, CampaignFullError, ValidationError
        """
        campaign = self._requireOwner(campaignId, actorId)

        if campaign.status == CampaignStatus.CLOSED.value:
            raise ValidationError(f"Campaign {campaignId} is closed")

        if not self.session.query(Agent).filter_by(agentID=userId).first():
            raise ValidationError(f"Agent {userId} does not exist")

        active = self.getActiveParticipants(campaignId)
        if any(p.userID == userId for p in active):
            raise ValidationError(f"Agent {userId} already participates in campaign {campaignId}")

        if len(active) >= CAMPAIGN_MAX_PARTICIPANTS:
            raise CampaignFullError(
                f"Campaign {campaignId} already has {CAMPAIGN_MAX_PARTICIPANTS} participants"
            )

        participant = CampaignParticipant(
            campaignID=campaignId,
            userID=userId,
            role=ParticipantRole.PARTICIPANT.value,
            joinedAt=asUtc(timeMachine.now).replace(tzinfo=None),
        )
        self.session.add(participant)
        self.session.flush()

        logger.info(f"Agent {userId} joined campaign {campaignId} ({len(active) + 1}/{CAMPAIGN_MAX_PARTICIPANTS})")
        return participant

    async def removeParticipant(self, campaignId: int, actorId: int, userId: int) -> CampaignParticipant:
        """
        Remove a guest from the campaign. Owner only; the owner cannot be removed.

        Raises:
            NotCampaignOwnerError, ValidationError
        """
        campaign = self._requireOwner(campaignId, actorId)

        if userId == campaign.ownerID:
            raise ValidationError(f"Owner cannot be removed from campaign {campaignId}")

        participant = self.session.query(CampaignParticipant).filter(
            CampaignParticipant.campaignID == campaignId,
            CampaignParticipant.userID == userId,
            CampaignParticipant.removedAt.is_(None)
        ).first()

        if not participant:
            raise ValidationError(f"Agent {userId} is not an active participant of campaign {campaignId}")

        participant.removedAt = asUtc(timeMachine.now).replace(tzinfo=None)
        self.session.flush()

        logger.info(f"Agent {userId} removed from campaign {campaignId} by {actorId}")
        return participant

    async def attributeSale(
            self,
            campaignId: int,
            userId: int,
            amount,
            installedAt: Optional[datetime] = None,
            status: str = SaleStatus.INSTALADO.value,
            customerName: Optional[str] = None
    ) -> Sale:
        """
        Record a participant's sale against the campaign.

        Raises:
            ValidationError: negative amount, unknown status, closed campaign,
                user not an active participant
        """
        campaign = self.getCampaign(campaignId)
        saleAmount = toDecimal(amount)

        if saleAmount < ZERO:
            raise ValidationError(f"Sale amount must be non-negative, got {saleAmount}")

        try:
            SaleStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown sale status {status!r}")

        if campaign.status == CampaignStatus.CLOSED.value:
            raise ValidationError(f"Campaign {campaignId} is closed")

        if not any(p.userID == userId for p in self.getActiveParticipants(campaignId)):
            raise ValidationError(f"Agent {userId} is not a participant of campaign {campaignId}")

        if installedAt is None and status == SaleStatus.INSTALADO.value:
            installedAt = timeMachine.now

        sale = Sale(
            userID=userId,
            campaignID=campaignId,
            amount=saleAmount,
            status=status,
            installedAt=asUtc(installedAt).replace(tzinfo=None) if installedAt else None,
            customerName=customerName,
        )
        self.session.add(sale)
        self.session.flush()

        logger.debug(f"Sale {sale.saleID} of {saleAmount} attributed to campaign {campaignId} by {userId}")
        return sale

    def _requireOwner(self, campaignId: int, actorId: int) -> Campaign:
        campaign = self.getCampaign(campaignId)
        if campaign.ownerID != actorId:
            raise NotCampaignOwnerError(
                f"Agent {actorId} is not the owner of campaign {campaignId}"
            )
        return campaign
