# llave_system/utils/time_machine.py
"""
Time machine for testing - controls virtual time in the system.
Also knows the weekly evaluation calendar (Wednesday 00:00 local time).
"""
from datetime import date, datetime, time, timezone, timedelta
from typing import Optional
from zoneinfo import ZoneInfo
import logging

from llave_system.config.rules import (
    DEFAULT_EVALUATION_TIMEZONE,
    EVALUATION_HOUR,
    EVALUATION_WEEKDAY,
)

logger = logging.getLogger(__name__)


def asUtc(moment: datetime) -> datetime:
    """Treat naive datetimes (as stored by SQLite) as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class TimeMachine:
    """Singleton for managing system time."""

    _instance = None
    _virtualTime: Optional[datetime] = None
    _isTestMode: bool = False
    _timezoneName: Optional[str] = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def now(self) -> datetime:
        """Get current system time (real or virtual), UTC."""
        if self._isTestMode and self._virtualTime:
            return self._virtualTime
        return datetime.now(timezone.utc)

    @property
    def evaluationTimezone(self) -> ZoneInfo:
        """Timezone in which the weekly Key evaluation runs."""
        if self._timezoneName is None:
            from config import Config
            self._timezoneName = Config.get(Config.EVALUATION_TIMEZONE) or DEFAULT_EVALUATION_TIMEZONE
        return ZoneInfo(self._timezoneName)

    def setEvaluationTimezone(self, name: Optional[str]):
        """Override the evaluation timezone (None reloads it from Config)."""
        self._timezoneName = name

    # ═══════════════════════════════════════════════════════════════════
    # EVALUATION WEEKS
    # ═══════════════════════════════════════════════════════════════════

    def weekDateFor(self, moment: datetime) -> date:
        """
        Local date of the evaluation Wednesday that opened the week containing moment.
        """
        local = asUtc(moment).astimezone(self.evaluationTimezone)
        daysSinceEvaluation = (local.weekday() - EVALUATION_WEEKDAY) % 7
        weekDate = local.date() - timedelta(days=daysSinceEvaluation)

        # Before the evaluation hour on a Wednesday still belongs to the previous week
        if daysSinceEvaluation == 0 and local.hour < EVALUATION_HOUR:
            weekDate -= timedelta(days=7)
        return weekDate

    def weekBounds(self, weekDate: date) -> tuple:
        """UTC [start, end) of the evaluation week opened on weekDate."""
        start = datetime.combine(weekDate, time(EVALUATION_HOUR), tzinfo=self.evaluationTimezone)
        end = datetime.combine(weekDate + timedelta(days=7), time(EVALUATION_HOUR), tzinfo=self.evaluationTimezone)
        return start.astimezone(timezone.utc), end.astimezone(timezone.utc)

    @property
    def currentWeekDate(self) -> date:
        return self.weekDateFor(self.now)

    @property
    def lastClosedWeekDate(self) -> date:
        """Week settled by the most recent Wednesday evaluation."""
        return self.currentWeekDate - timedelta(days=7)

    @property
    def currentWeekId(self) -> str:
        """Week identifier, e.g. '2024-12-11'."""
        return self.currentWeekDate.isoformat()

    @property
    def daysUntilEvaluation(self) -> int:
        """Days until next Wednesday; 7 when today is Wednesday."""
        local = self.now.astimezone(self.evaluationTimezone)
        daysUntil = (EVALUATION_WEEKDAY - local.weekday()) % 7
        return daysUntil if daysUntil else 7

    @property
    def nextEvaluationAt(self) -> datetime:
        """UTC moment of the next weekly evaluation."""
        _, end = self.weekBounds(self.currentWeekDate)
        return end

    # ═══════════════════════════════════════════════════════════════════
    # VIRTUAL TIME
    # ═══════════════════════════════════════════════════════════════════

    def setTime(self, newTime: datetime, adminId: Optional[int] = None):
        """Set virtual time for testing."""
        self._isTestMode = True
        self._virtualTime = asUtc(newTime)
        logger.info(f"Virtual time set to {self._virtualTime} by admin {adminId}")

    def advanceTime(self, days: int = 0, hours: int = 0):
        """Advance virtual time forward."""
        if not self._isTestMode:
            raise ValueError("Cannot advance time when not in test mode")

        self._virtualTime += timedelta(days=days, hours=hours)
        logger.info(f"Time advanced to {self._virtualTime}")

    def resetToRealTime(self):
        """Return to real time."""
        self._isTestMode = False
        self._virtualTime = None
        logger.info("Returned to real time")


# Global instance
timeMachine = TimeMachine()
