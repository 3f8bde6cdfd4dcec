"""Price snapshot scheduler service."""
import logging
from typing import Optional
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.exc import SQLAlchemyError
from meme_exchange.core.database import SessionLocal
from meme_exchange.core.config import get_settings
from meme_exchange.services.coin_service import record_price_snapshots

logger = logging.getLogger(__name__)
settings = get_settings()


class SnapshotScheduler:
    """Periodically samples coin prices into the price history table."""

    def __init__(self, session_factory=SessionLocal):
        """Initialize the scheduler.

        Args:
            session_factory: Callable returning a new database session
        """
        self.scheduler: Optional[BackgroundScheduler] = None
        self.session_factory = session_factory

    def start(self):
        """Start the scheduler."""
        if not settings.scheduler_enabled:
            logger.info("Scheduler is disabled in settings")
            return

        if self.scheduler and self.scheduler.running:
            logger.warning("Scheduler is already running")
            return

        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

        self.scheduler.add_job(
            func=self.run_snapshots,
            trigger=IntervalTrigger(seconds=settings.snapshot_interval_seconds),
            id="price_snapshot_job",
            name="Record meme coin price snapshots",
            replace_existing=True
        )

        self.scheduler.start()
        logger.info(
            f"Scheduler started. Recording price snapshots every {settings.snapshot_interval_seconds} seconds"
        )

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self.scheduler.running:
            self.scheduler.shutdown()
            logger.info("Scheduler stopped")

    def run_snapshots(self) -> int:
        """Record one snapshot per tradable coin.

        Returns:
            Number of snapshots recorded (0 on database errors)
        """
        db = self.session_factory()
        try:
            return record_price_snapshots(db)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Error recording price snapshots: {e}")
            return 0
        finally:
            db.close()


snapshot_scheduler = SnapshotScheduler()
