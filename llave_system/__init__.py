"""
Llave System - Key eligibility, downline commissions and campaign budgets.
"""

# Services
from llave_system.services.commission_service import CommissionCalculator, calculateCommissions
from llave_system.services.campaign_budget_service import CampaignBudgetCalculator
from llave_system.services.campaign_service import CampaignService
from llave_system.services.weekly_recompute_service import WeeklyRecomputeService
from llave_system.services.agent_context_service import AgentContextService
from llave_system.services.team_service import TeamService
from llave_system.services.eligibility_service import evaluateEligibility

# Records and configuration
from llave_system.types import AgentRecord, CampaignRecord, CommissionBreakdown, BudgetSnapshot
from llave_system.config.rules import Generation, CampaignStatus, LLAVE_THRESHOLD
from llave_system.errors import LlaveError, ValidationError, DataIntegrityError

# Utilities
from llave_system.utils.downline_index import DownlineIndex
from llave_system.utils.time_machine import timeMachine

# Events
from llave_system.events.event_bus import eventBus, LlaveEvents

__all__ = [
    # Services
    'CommissionCalculator',
    'calculateCommissions',
    'CampaignBudgetCalculator',
    'CampaignService',
    'WeeklyRecomputeService',
    'AgentContextService',
    'TeamService',
    'evaluateEligibility',

    # Records and config
    'AgentRecord',
    'CampaignRecord',
    'CommissionBreakdown',
    'BudgetSnapshot',
    'Generation',
    'CampaignStatus',
    'LLAVE_THRESHOLD',
    'LlaveError',
    'ValidationError',
    'DataIntegrityError',

    # Utils
    'DownlineIndex',
    'timeMachine',

    # Events
    'eventBus',
    'LlaveEvents',
]
