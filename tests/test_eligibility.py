# tests/test_eligibility.py
"""
Tests for Key (Llave del Reino) eligibility helpers.

Run:
    pytest tests/test_eligibility.py -v
"""
from decimal import Decimal

import pytest

from llave_system.config.rules import KeyStatus
from llave_system.services.eligibility_service import (
    classifyMemberActivity,
    evaluateEligibility,
    getKeyStatus,
    getLlavePercentage,
    getMissingForKey,
    isAtRisk,
)


# =============================================================================
# TEST CLASS: Key threshold
# =============================================================================

class TestEvaluateEligibility:
    """Key is held iff sales30d >= 15000."""

    def test_exact_threshold_holds_key(self):
        """TEST: 15000 exactly is enough."""
        assert evaluateEligibility(Decimal("15000")) is True

    def test_one_cent_below_threshold(self):
        """TEST: 14999.99 is not enough."""
        assert evaluateEligibility(Decimal("14999.99")) is False

    def test_zero_sales(self):
        assert evaluateEligibility(0) is False

    def test_accepts_plain_numbers(self):
        """TEST: ints and strings are coerced to Decimal."""
        assert evaluateEligibility(20000) is True
        assert evaluateEligibility("15000.00") is True


# =============================================================================
# TEST CLASS: Key status
# =============================================================================

class TestKeyStatus:
    """ACTIVE / AT_RISK / INACTIVE classification."""

    @pytest.mark.parametrize("sales, expected", [
        ("18500", KeyStatus.ACTIVE),
        ("15000", KeyStatus.ACTIVE),
        ("14999.99", KeyStatus.AT_RISK),
        ("12000", KeyStatus.AT_RISK),
        ("11999.99", KeyStatus.INACTIVE),
        ("0", KeyStatus.INACTIVE),
    ])
    def test_status_boundaries(self, sales, expected):
        assert getKeyStatus(Decimal(sales)) == expected

    def test_at_risk_excludes_key_holders(self):
        """TEST: at-risk is informational and never overlaps the Key."""
        assert isAtRisk(Decimal("15000")) is False
        assert isAtRisk(Decimal("12800")) is True


# =============================================================================
# TEST CLASS: Progress helpers
# =============================================================================

class TestProgress:
    """Percentage and missing amount toward the Key."""

    def test_percentage_rounds_half_up(self):
        """TEST: 12800 / 15000 = 85.33% -> 85; 7575 / 15000 = 50.5% -> 51."""
        assert getLlavePercentage(Decimal("12800")) == 85
        assert getLlavePercentage(Decimal("7575")) == 51

    def test_percentage_may_exceed_hundred(self):
        assert getLlavePercentage(Decimal("18500")) == 123

    def test_missing_for_key(self):
        assert getMissingForKey(Decimal("12800")) == Decimal("2200")

    def test_missing_for_key_is_zero_when_active(self):
        assert getMissingForKey(Decimal("16000")) == Decimal("0")


# =============================================================================
# TEST CLASS: Team activity buckets
# =============================================================================

class TestClassifyMemberActivity:
    """Buckets used by the team-at-risk list."""

    @pytest.mark.parametrize("sales, expected", [
        ("13500", "at_risk"),
        ("11200", "close_to_llave"),
        ("10500", "close_to_llave"),
        ("4499.99", "inactive"),
        ("0", None),
        ("7800", None),
        ("16000", None),
    ])
    def test_buckets(self, sales, expected):
        assert classifyMemberActivity(Decimal(sales)) == expected
