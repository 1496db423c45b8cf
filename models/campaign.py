# llave/models/campaign.py
"""
Campaign chain and participant models.
Campaigns owned by one agent form a linked chain via parent/child IDs.
"""
from sqlalchemy import Column, Integer, String, DateTime, Index
from models.base import Base, _get_current_time


class Campaign(Base):
    __tablename__ = 'campaigns'

    campaignID = Column(Integer, primary_key=True, autoincrement=True)
    ownerID = Column(Integer, nullable=False, index=True)
    name = Column(String, nullable=True)

    status = Column(String(10), default='ACTIVE', index=True)  # ACTIVE, PAUSED, CLOSED

    # Chain links (no ForeignKey, resolved by services)
    chainPosition = Column(Integer, nullable=False, default=1)  # 1 = root
    parentCampaignID = Column(Integer, nullable=True, index=True)  # overflowed FROM
    childCampaignID = Column(Integer, nullable=True)  # overflows TO

    createdAt = Column(DateTime, default=_get_current_time)
    initialPeriodEndsAt = Column(DateTime, nullable=True)  # createdAt + 2 weeks

    def __repr__(self):
        return (
            f"<Campaign(campaignID={self.campaignID}, owner={self.ownerID}, "
            f"pos={self.chainPosition}, status={self.status})>"
        )


class CampaignParticipant(Base):
    """Up to 4 active per campaign: 1 owner + 3 participants."""
    __tablename__ = 'campaign_participants'

    participantID = Column(Integer, primary_key=True, autoincrement=True)
    campaignID = Column(Integer, nullable=False, index=True)
    userID = Column(Integer, nullable=False, index=True)

    role = Column(String(12), nullable=False, default='participant')  # owner, participant
    joinedAt = Column(DateTime, default=_get_current_time)
    removedAt = Column(DateTime, nullable=True)  # None = active

    __table_args__ = (
        Index('ix_participant_campaign_user', 'campaignID', 'userID'),
    )

    def __repr__(self):
        return f"<CampaignParticipant(campaign={self.campaignID}, user={self.userID}, role={self.role})>"
