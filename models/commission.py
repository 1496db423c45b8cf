# llave/models/commission.py
"""
WeeklyCommission - downline commission computed for one agent in one week.
"""
from sqlalchemy import Column, Integer, DECIMAL, Boolean, Date, UniqueConstraint
from models.base import Base, TimestampMixin


class WeeklyCommission(TimestampMixin, Base):
    __tablename__ = 'weekly_commissions'

    commissionID = Column(Integer, primary_key=True, autoincrement=True)
    agentID = Column(Integer, nullable=False, index=True)
    weekDate = Column(Date, nullable=False, index=True)

    hadKey = Column(Boolean, nullable=False, default=False)
    fromChildren = Column(DECIMAL(12, 2), nullable=False, default=0)
    fromGrandchildren = Column(DECIMAL(12, 2), nullable=False, default=0)
    fromGreatGrandchildren = Column(DECIMAL(12, 2), nullable=False, default=0)
    total = Column(DECIMAL(12, 2), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('agentID', 'weekDate', name='uq_commission_agent_week'),
    )

    def __repr__(self):
        return f"<WeeklyCommission(agent={self.agentID}, week={self.weekDate}, total={self.total})>"
