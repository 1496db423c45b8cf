"""
Database models for the Llave engine.
Import all models here for easy access and table registration.
"""

# Base and mixins
from models.base import Base, TimestampMixin

# Agent directory
from models.agent import Agent
from models.sale import Sale

# Campaign store
from models.campaign import Campaign, CampaignParticipant
from models.campaign_snapshot import CampaignWeeklySnapshot
from models.commission import WeeklyCommission

__all__ = [
    # Base
    'Base',
    'TimestampMixin',

    # Directory
    'Agent',
    'Sale',

    # Campaigns
    'Campaign',
    'CampaignParticipant',
    'CampaignWeeklySnapshot',
    'WeeklyCommission',
]
