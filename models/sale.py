# llave/models/sale.py
"""
Sale model - funnel entries, optionally attributed to a campaign.
Only INSTALADO sales count toward campaign weekly totals.
"""
from sqlalchemy import Column, Integer, String, DECIMAL, DateTime
from models.base import Base, TimestampMixin


class Sale(TimestampMixin, Base):
    __tablename__ = 'sales'

    saleID = Column(Integer, primary_key=True, autoincrement=True)
    userID = Column(Integer, nullable=False, index=True)
    campaignID = Column(Integer, nullable=True, index=True)

    amount = Column(DECIMAL(12, 2), nullable=False)
    status = Column(String(12), nullable=False, default='INSTALADO', index=True)  # PROSPECTO, COTIZADO, AGENDADO, INSTALADO
    installedAt = Column(DateTime, nullable=True, index=True)

    customerName = Column(String, nullable=True)

    def __repr__(self):
        return f"<Sale(saleID={self.saleID}, user={self.userID}, campaign={self.campaignID}, amount={self.amount})>"
