# tests/test_weekly_scheduler.py
"""
Tests for the weekly scheduler jobs (without starting APScheduler).

Run:
    pytest tests/test_weekly_scheduler.py -v
"""
from contextlib import contextmanager
from datetime import date

import pytest

import background.weekly_scheduler as weekly_scheduler
from background.weekly_scheduler import WeeklyScheduler
from models import WeeklyCommission
from llave_system.utils.week_locks import WeekLockRegistry

LAST_CLOSED = date(2024, 12, 4)


@pytest.fixture
def scheduler(session, monkeypatch):
    """Scheduler whose jobs run against the test session."""

    @contextmanager
    def _session_ctx():
        yield session
        session.flush()

    monkeypatch.setattr(weekly_scheduler, "get_db_session_ctx", _session_ctx)
    return WeeklyScheduler()


@pytest.fixture
def network(add_agents):
    return add_agents([
        (1, None, 20000, "Valeria"),
        (2, 1, 16000, "Carlos"),
    ])


# =============================================================================
# TEST CLASS: Jobs
# =============================================================================

class TestSettleWeek:
    """Weekly recompute job."""

    async def test_settles_last_closed_week(self, session, scheduler, network):
        result = await scheduler.settleWeek()

        assert result["weekDate"] == "2024-12-04"
        assert scheduler.lastSettledWeek == LAST_CLOSED
        assert scheduler.stats["weeksSettled"] == 1
        assert scheduler.stats["lastRunStats"] is result
        assert session.query(WeeklyCommission).filter_by(weekDate=LAST_CLOSED).count() == 2

    async def test_safe_wrapper_counts_errors(self, scheduler, monkeypatch):
        async def broken(weekDate=None):
            raise RuntimeError("store unavailable")

        monkeypatch.setattr(scheduler, "settleWeek", broken)

        await scheduler._safe_weekly_recompute_wrapper()

        assert scheduler.stats["errors"] == 1
        assert scheduler.stats["lastError"] == "store unavailable"


class TestMissedWeek:
    """Catch-up when the Wednesday run never happened."""

    async def test_catch_up_runs_once(self, scheduler, network):
        assert await scheduler.checkMissedWeek() is True
        assert await scheduler.checkMissedWeek() is False
        assert scheduler.stats["weeksSettled"] == 1

    async def test_already_settled_in_store(self, session, scheduler, network):
        session.add(WeeklyCommission(agentID=1, weekDate=LAST_CLOSED, hadKey=True))
        session.flush()

        assert await scheduler.checkMissedWeek() is False
        assert scheduler.lastSettledWeek == LAST_CLOSED
        assert scheduler.stats["weeksSettled"] == 0

    async def test_safe_wrapper_counts_errors(self, scheduler, monkeypatch):
        async def broken():
            raise RuntimeError("boom")

        monkeypatch.setattr(scheduler, "checkMissedWeek", broken)

        await scheduler._safe_missed_week_wrapper()

        assert scheduler.stats["errors"] == 1


class TestStatus:

    def test_status_before_start(self, scheduler):
        status = scheduler.getStatus()

        assert status["isRunning"] is False
        assert status["currentWeek"] == "2024-12-11"
        assert status["lastSettledWeek"] is None
        assert status["nextEvaluationAt"] == "2024-12-18T06:00:00+00:00"
        assert status["jobs"] == []


# =============================================================================
# TEST CLASS: Week locks
# =============================================================================

class TestWeekLocks:
    """One lock per (owner, week)."""

    def test_same_key_same_lock(self):
        registry = WeekLockRegistry()

        assert registry.lockFor(1, "2024-12-04") is registry.lockFor(1, "2024-12-04")
        assert registry.lockFor(1, "2024-12-04") is not registry.lockFor(1, "2024-12-11")

    async def test_release_keeps_held_locks(self):
        registry = WeekLockRegistry()
        registry.lockFor(2, "2024-12-04")

        async with registry.lockFor(1, "2024-12-04"):
            assert registry.isLocked(1, "2024-12-04") is True
            assert registry.releaseWeek("2024-12-04") == 1

        assert registry.releaseWeek("2024-12-04") == 1
