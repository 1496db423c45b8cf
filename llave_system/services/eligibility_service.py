# llave_system/services/eligibility_service.py
"""
Eligibility evaluator - Key (Llave del Reino) status from trailing 30-day sales.

Pure functions. Input is assumed validated (non-negative); negative sales are
rejected earlier by directory_loader.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from llave_system.config.rules import (
    KeyStatus,
    LLAVE_THRESHOLD,
    AT_RISK_THRESHOLD,
    CLOSE_TO_LLAVE_RATIO,
    LOW_ACTIVITY_RATIO,
)
from llave_system.utils.money import ZERO, toDecimal


def evaluateEligibility(sales30d) -> bool:
    """
    Check whether an agent holds the Key this week.

    Example:
        evaluateEligibility(Decimal("15000")) -> True
        evaluateEligibility(Decimal("14999.99")) -> False
    """
    return toDecimal(sales30d) >= LLAVE_THRESHOLD


def isAtRisk(sales30d) -> bool:
    """Informational: close below the threshold (12000 <= sales < 15000)."""
    sales = toDecimal(sales30d)
    return AT_RISK_THRESHOLD <= sales < LLAVE_THRESHOLD


def getKeyStatus(sales30d) -> KeyStatus:
    if evaluateEligibility(sales30d):
        return KeyStatus.ACTIVE
    if isAtRisk(sales30d):
        return KeyStatus.AT_RISK
    return KeyStatus.INACTIVE


def getLlavePercentage(sales30d) -> int:
    """Progress toward the threshold as a whole percentage (may exceed 100)."""
    ratio = toDecimal(sales30d) / LLAVE_THRESHOLD * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def getMissingForKey(sales30d) -> Decimal:
    """Sales still needed to reach the threshold, 0 when already active."""
    return max(LLAVE_THRESHOLD - toDecimal(sales30d), ZERO)


def classifyMemberActivity(sales30d) -> Optional[str]:
    """
    Bucket a downline member for the team-at-risk list.

    Returns:
        'at_risk', 'close_to_llave', 'inactive' or None (nothing to flag)
    """
    sales = toDecimal(sales30d)

    if isAtRisk(sales):
        return "at_risk"
    if LLAVE_THRESHOLD * CLOSE_TO_LLAVE_RATIO <= sales < LLAVE_THRESHOLD:
        return "close_to_llave"
    if ZERO < sales < LLAVE_THRESHOLD * LOW_ACTIVITY_RATIO:
        return "inactive"
    return None
