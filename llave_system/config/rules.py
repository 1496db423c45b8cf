"""
Llave del Reino business rules: thresholds, commission rates, budget constants.
"""
from enum import Enum
from decimal import Decimal
from typing import Dict


class KeyStatus(Enum):
    """Key (Llave del Reino) state of an agent for the current week."""
    ACTIVE = "active"
    AT_RISK = "at_risk"
    INACTIVE = "inactive"


class Generation(Enum):
    """Downline generation relative to a viewing agent."""
    DIRECT = 1            # hijo
    GRANDCHILD = 2        # nieto
    GREAT_GRANDCHILD = 3  # bisnieto
    BEYOND = 4            # tataranieto and deeper, never earns commission

    @property
    def label(self) -> str:
        return GENERATION_LABELS[self]


class CampaignStatus(Enum):
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    CLOSED = "CLOSED"


class ParticipantRole(Enum):
    OWNER = "owner"
    PARTICIPANT = "participant"


class SaleStatus(Enum):
    """Sales funnel stages. Only INSTALADO counts toward KPIs and budgets."""
    PROSPECTO = "PROSPECTO"
    COTIZADO = "COTIZADO"
    AGENDADO = "AGENDADO"
    INSTALADO = "INSTALADO"


# ═══════════════════════════════════════════════════════════════════════
# KEY
# ═══════════════════════════════════════════════════════════════════════

LLAVE_THRESHOLD = Decimal("15000")
AT_RISK_THRESHOLD = Decimal("12000")
CLOSE_TO_LLAVE_RATIO = Decimal("0.7")
LOW_ACTIVITY_RATIO = Decimal("0.3")

# Evaluation happens every Wednesday at 00:00 local time
EVALUATION_WEEKDAY = 2  # Monday = 0
EVALUATION_HOUR = 0
DEFAULT_EVALUATION_TIMEZONE = "America/Mexico_City"

# ═══════════════════════════════════════════════════════════════════════
# COMMISSIONS
# ═══════════════════════════════════════════════════════════════════════

MAX_COMMISSION_DEPTH = 3
WEEKS_PER_30_DAYS = Decimal("4")

GENERATION_RATES: Dict[Generation, Decimal] = {
    Generation.DIRECT: Decimal("0.08"),
    Generation.GRANDCHILD: Decimal("0.12"),
    Generation.GREAT_GRANDCHILD: Decimal("0.20"),
    Generation.BEYOND: Decimal("0"),
}

GENERATION_LABELS: Dict[Generation, str] = {
    Generation.DIRECT: "hijo",
    Generation.GRANDCHILD: "nieto",
    Generation.GREAT_GRANDCHILD: "bisnieto",
    Generation.BEYOND: "tataranieto",
}

# ═══════════════════════════════════════════════════════════════════════
# CAMPAIGNS
# ═══════════════════════════════════════════════════════════════════════

CAMPAIGN_BUDGET_CAP = Decimal("800")
CAMPAIGN_INITIAL_BUDGET = Decimal("200")
CAMPAIGN_INITIAL_WEEKS = 2
CAMPAIGN_SALES_DIVISOR = Decimal("2.5")
CAMPAIGN_MAX_PARTICIPANTS = 4

TEAM_AT_RISK_LIMIT = 5
