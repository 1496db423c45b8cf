# llave/models/campaign_snapshot.py
"""
Weekly budget snapshot - one row per campaign per evaluation week.
"""
from sqlalchemy import Column, Integer, DECIMAL, Boolean, Date, UniqueConstraint
from models.base import Base, TimestampMixin


class CampaignWeeklySnapshot(TimestampMixin, Base):
    __tablename__ = 'campaign_weekly_snapshots'

    snapshotID = Column(Integer, primary_key=True, autoincrement=True)
    campaignID = Column(Integer, nullable=False, index=True)
    weekDate = Column(Date, nullable=False, index=True)  # local date of the evaluation Wednesday

    totalSales = Column(DECIMAL(12, 2), nullable=False, default=0)
    isInitialPeriod = Column(Boolean, nullable=False, default=False)
    baseBudget = Column(DECIMAL(12, 2), nullable=False, default=0)
    cappedBudget = Column(DECIMAL(12, 2), nullable=False, default=0)
    overflowIn = Column(DECIMAL(12, 2), nullable=False, default=0)
    overflowOut = Column(DECIMAL(12, 2), nullable=False, default=0)
    totalBudget = Column(DECIMAL(12, 2), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('campaignID', 'weekDate', name='uq_snapshot_campaign_week'),
    )

    def __repr__(self):
        return (
            f"<CampaignWeeklySnapshot(campaign={self.campaignID}, week={self.weekDate}, "
            f"total={self.totalBudget}, out={self.overflowOut})>"
        )
