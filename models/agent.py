# llave/models/agent.py
"""
Agent model - the agent directory (who referred whom, trailing sales).
"""
from sqlalchemy import Column, Integer, String, DECIMAL, Boolean, DateTime, Date
from models.base import Base, TimestampMixin


class Agent(TimestampMixin, Base):
    __tablename__ = 'agents'

    agentID = Column(Integer, primary_key=True, autoincrement=True)
    parentID = Column(Integer, nullable=True, index=True)  # agentID of the referrer, None for roots

    name = Column(String, nullable=True)
    email = Column(String, nullable=True, index=True)

    # Sum of INSTALADO sales over the trailing 30 days
    sales30d = Column(DECIMAL(12, 2), nullable=False, default=0)

    # Key state as of the last weekly evaluation
    hasKey = Column(Boolean, default=False, index=True)
    keyAcquiredAt = Column(DateTime, nullable=True)  # first time the Key was ever attained
    lastEvaluatedWeek = Column(Date, nullable=True)

    def __repr__(self):
        return f"<Agent(agentID={self.agentID}, parent={self.parentID}, sales30d={self.sales30d})>"
