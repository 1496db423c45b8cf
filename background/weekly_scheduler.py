# background/weekly_scheduler.py
"""
Weekly scheduler - settles each evaluation week on Wednesday 00:00.
Uses APScheduler for task scheduling.
"""
import logging
from datetime import date, datetime, timezone
from typing import Optional
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from config import Config
from core.db import get_db_session_ctx
from models.commission import WeeklyCommission
from llave_system.config.rules import EVALUATION_HOUR
from llave_system.services.weekly_recompute_service import WeeklyRecomputeService
from llave_system.utils.time_machine import timeMachine

logger = logging.getLogger(__name__)


class WeeklyScheduler:
    """
    Background scheduler for the weekly Key evaluation.

    Jobs:
    - Weekly recompute: every Wednesday 00:00 in the evaluation timezone
    - Missed week check: every hour, settles the last week if the
      Wednesday run never happened (process was down)
    """

    def __init__(self):
        self.isRunning = False
        self.timezoneName = timeMachine.evaluationTimezone.key

        self.scheduler = AsyncIOScheduler(
            timezone=self.timezoneName,
            job_defaults={
                'coalesce': True,  # Combine missed runs into one
                'max_instances': 1,  # Only one instance of each job at a time
                'misfire_grace_time': Config.get(Config.MISFIRE_GRACE_SECONDS) or 3600
            }
        )

        self.lastSettledWeek: Optional[date] = None

        self.stats = {
            "weeksSettled": 0,
            "errors": 0,
            "lastError": None,
            "startedAt": None,
            "lastExecutedAt": None,
            "lastRunStats": None
        }

    async def start(self):
        """Start scheduler with all jobs."""
        if self.isRunning:
            logger.warning("Weekly Scheduler already running")
            return

        logger.info("=" * 60)
        logger.info("Starting Weekly Scheduler with APScheduler")
        logger.info("=" * 60)

        self.isRunning = True
        self.stats["startedAt"] = datetime.now(timezone.utc)

        # ═══════════════════════════════════════════════════════════════
        # JOB 1: Weekly recompute (Wednesday 00:00 local)
        # ═══════════════════════════════════════════════════════════════
        self.scheduler.add_job(
            func=self._safe_weekly_recompute_wrapper,
            trigger=CronTrigger(
                day_of_week='wed',
                hour=EVALUATION_HOUR,
                minute=0,
                timezone=self.timezoneName
            ),
            id='weekly_recompute',
            name='Weekly Recompute (Wednesday 00:00)',
            replace_existing=True
        )
        logger.info(f"✓ Job registered: Weekly Recompute (Wednesday 00:00 {self.timezoneName})")

        # ═══════════════════════════════════════════════════════════════
        # JOB 2: Missed week check (every 1 hour)
        # ═══════════════════════════════════════════════════════════════
        self.scheduler.add_job(
            func=self._safe_missed_week_wrapper,
            trigger=IntervalTrigger(hours=1),
            id='missed_week_check',
            name='Missed Week Check',
            replace_existing=True
        )
        logger.info("✓ Job registered: Missed Week Check (every 1 hour)")

        self.scheduler.start()

        logger.info("=" * 60)
        logger.info("✅ Weekly Scheduler started successfully")
        logger.info(f"Active jobs: {len(self.scheduler.get_jobs())}")
        logger.info("=" * 60)

    async def stop(self):
        """Stop scheduler gracefully."""
        if not self.isRunning:
            return

        logger.info("Stopping Weekly Scheduler...")
        self.isRunning = False

        if self.scheduler.running:
            self.scheduler.shutdown(wait=True)

        logger.info("✓ Weekly Scheduler stopped")

    # ═══════════════════════════════════════════════════════════════════
    # SAFE WRAPPERS (error handling for APScheduler jobs)
    # ═══════════════════════════════════════════════════════════════════

    async def _safe_weekly_recompute_wrapper(self):
        """Safe wrapper for the weekly recompute."""
        try:
            await self.settleWeek()
        except Exception as e:
            logger.error(f"Error in weekly recompute job: {e}", exc_info=True)
            self.stats["errors"] += 1
            self.stats["lastError"] = str(e)

    async def _safe_missed_week_wrapper(self):
        """Safe wrapper for the missed week check."""
        try:
            await self.checkMissedWeek()
        except Exception as e:
            logger.error(f"Error in missed week job: {e}", exc_info=True)
            self.stats["errors"] += 1
            self.stats["lastError"] = str(e)

    # ═══════════════════════════════════════════════════════════════════
    # JOBS
    # ═══════════════════════════════════════════════════════════════════

    async def settleWeek(self, weekDate: Optional[date] = None) -> dict:
        """
        Run the recompute for one week in its own transaction.

        Args:
            weekDate: Week to settle; the week that just closed if None
        """
        weekDate = weekDate or timeMachine.lastClosedWeekDate
        logger.info(f"Settling evaluation week {weekDate} at {timeMachine.now}")

        with get_db_session_ctx() as session:
            result = await WeeklyRecomputeService(session).runWeek(weekDate)

        self.lastSettledWeek = weekDate
        self.stats["weeksSettled"] += 1
        self.stats["lastExecutedAt"] = datetime.now(timezone.utc)
        self.stats["lastRunStats"] = result
        return result

    async def checkMissedWeek(self) -> bool:
        """
        Settle the last closed week if nothing was written for it yet.

        Returns:
            True if a catch-up run happened
        """
        weekDate = timeMachine.lastClosedWeekDate
        if self.lastSettledWeek == weekDate:
            return False

        with get_db_session_ctx() as session:
            settled = session.query(WeeklyCommission).filter_by(weekDate=weekDate).first() is not None

        if settled:
            self.lastSettledWeek = weekDate
            return False

        logger.warning(f"Week {weekDate} was not settled on time, running catch-up")
        await self.settleWeek(weekDate)
        return True

    def getStatus(self) -> dict:
        """Get scheduler status."""
        jobs_info = []
        if self.scheduler.running:
            for job in self.scheduler.get_jobs():
                jobs_info.append({
                    "id": job.id,
                    "name": job.name,
                    "next_run": job.next_run_time.isoformat() if job.next_run_time else None
                })

        return {
            "isRunning": self.isRunning,
            "schedulerRunning": self.scheduler.running,
            "currentTime": timeMachine.now.isoformat(),
            "isTestMode": timeMachine._isTestMode,
            "currentWeek": timeMachine.currentWeekId,
            "lastSettledWeek": self.lastSettledWeek.isoformat() if self.lastSettledWeek else None,
            "nextEvaluationAt": timeMachine.nextEvaluationAt.isoformat(),
            "stats": self.stats,
            "jobs": jobs_info
        }


# Global scheduler instance (created in llave.py)
scheduler: Optional[WeeklyScheduler] = None
