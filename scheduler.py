import logging
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from config import get_settings
from database import session_scope
from services import PaymentMethodService


logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


class SchedulerManager:
    def __init__(self) -> None:
        settings = get_settings()
        self.scheduler = BackgroundScheduler(timezone=settings.timezone)

    def _reset_usage(self, reset_type: str) -> None:
        logger.info(f"usage_reset_run: type={reset_type}")
        with session_scope() as session:
            count = PaymentMethodService(session).reset_usage(reset_type)
            logger.info(f"usage_reset_run: type={reset_type} methods_reset={count}")

    def start(self) -> None:
        trigger = CronTrigger(hour=0, minute=5)
        self.scheduler.add_job(
            self._reset_usage,
            trigger,
            args=["daily"],
            id="payment_usage_daily",
            replace_existing=True,
            misfire_grace_time=3600,
        )

        trigger = CronTrigger(day=1, hour=0, minute=10)
        self.scheduler.add_job(
            self._reset_usage,
            trigger,
            args=["monthly"],
            id="payment_usage_monthly",
            replace_existing=True,
            misfire_grace_time=6 * 3600,
        )

        self.scheduler.start()
        logger.info("Scheduler started with daily 00:05 and monthly day-1 usage resets")

    def stop(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler stopped")
