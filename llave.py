# llave/llave.py
"""
Llave Engine - Main entry point.
Runs the weekly Key evaluation service (Wednesday 00:00, Ciudad de México).
"""
import asyncio
import logging
import signal
import sys

from config import Config
from core.db import setup_database, dispose_engine

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

# Configure logging (file handler added once LOG_FILE is known)
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[
        logging.StreamHandler(sys.stdout)
    ]
)

logger = logging.getLogger(__name__)


async def initialize_engine():
    """
    Initialize configuration, database, event handlers and the scheduler.

    Returns:
        WeeklyScheduler or None when scheduling is disabled
    """
    try:
        logger.info("=" * 60)
        logger.info("LLAVE ENGINE INITIALIZATION")
        logger.info("=" * 60)

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 1: Load configuration from .env
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("📋 Loading configuration from .env...")
        Config.initialize_from_env()
        rootLogger = logging.getLogger()
        rootLogger.setLevel(Config.get(Config.LOG_LEVEL, "INFO"))
        fileHandler = logging.FileHandler(Config.get(Config.LOG_FILE, "llave.log"))
        fileHandler.setFormatter(logging.Formatter(LOG_FORMAT))
        rootLogger.addHandler(fileHandler)
        logger.info("✓ Configuration loaded")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 2: Validate critical configuration
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("🔍 Validating critical configuration keys...")
        Config.validate_critical_keys()
        logger.info("✓ Configuration validated")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 3: Setup database
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("💾 Setting up database...")
        setup_database()
        logger.info("✓ Database ready")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 4: Setup event handlers
        # ═══════════════════════════════════════════════════════════════════════
        logger.info("🎲 Setting up Llave event handlers...")
        from llave_system.events.setup import setup_llave_event_handlers
        setup_llave_event_handlers()
        logger.info("✓ Llave event handlers registered")

        # ═══════════════════════════════════════════════════════════════════════
        # STEP 5: Start weekly scheduler
        # ═══════════════════════════════════════════════════════════════════════
        weeklyScheduler = None
        if Config.get(Config.SCHEDULER_ENABLED):
            logger.info("🚀 Starting weekly scheduler...")
            import background.weekly_scheduler as weekly_scheduler
            weeklyScheduler = weekly_scheduler.WeeklyScheduler()
            weekly_scheduler.scheduler = weeklyScheduler
            await weeklyScheduler.start()
            await weeklyScheduler.checkMissedWeek()
            logger.info("✓ Weekly scheduler started")
        else:
            logger.warning("Weekly scheduler disabled (SCHEDULER_ENABLED=false)")

        Config.set(Config.SYSTEM_READY, True)

        logger.info("=" * 60)
        logger.info("✅ INITIALIZATION COMPLETE")
        logger.info("=" * 60)

        return weeklyScheduler

    except Exception as e:
        logger.critical(f"❌ Initialization failed: {e}", exc_info=True)
        raise


def setup_signal_handlers(loop: asyncio.AbstractEventLoop, stopEvent: asyncio.Event) -> None:
    """Setup signal handlers for graceful shutdown."""
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stopEvent.set)
        except NotImplementedError:
            # Signal handlers not available on Windows
            logger.warning(f"Signal handler for {sig} not available on this platform")


async def main():
    """Main entry point."""
    weeklyScheduler = None
    try:
        weeklyScheduler = await initialize_engine()

        stopEvent = asyncio.Event()
        setup_signal_handlers(asyncio.get_running_loop(), stopEvent)

        logger.info("🔄 Waiting for weekly evaluations...")
        await stopEvent.wait()

    except KeyboardInterrupt:
        logger.info("⚠️ Engine stopped by user")
    except Exception as e:
        logger.critical(f"❌ Fatal error: {e}", exc_info=True)
        sys.exit(1)
    finally:
        if weeklyScheduler:
            await weeklyScheduler.stop()
        dispose_engine()
        logger.info("👋 Engine shutdown complete")


if __name__ == '__main__':
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Engine stopped")
