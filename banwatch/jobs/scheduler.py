import logging
from datetime import datetime

import pytz
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from banwatch.config import settings
from banwatch.services.reconciliation import ReconciliationEngine

logger = logging.getLogger(__name__)

# Отключаем дублирующее логирование APScheduler, итог цикла пишет сам движок
logging.getLogger("apscheduler").setLevel(logging.WARNING)
logging.getLogger("apscheduler.scheduler").setLevel(logging.WARNING)
logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)
logging.getLogger("apscheduler.executors.default").setLevel(logging.WARNING)

CHECK_JOB_ID = "check_profiles"

_scheduler: AsyncIOScheduler | None = None


async def job_check_profiles(engine: ReconciliationEngine):
    """Один цикл сверки. Исключений не пробрасывает."""
    await engine.run_cycle()


def setup_scheduler(engine: ReconciliationEngine) -> AsyncIOScheduler:
    """
    Запускает задачу опроса: первый запуск сразу, затем каждые
    ``settings.check_interval`` минут.

    ``max_instances=1`` и ``coalesce`` не дают запускам копиться, если цикл
    длиннее интервала; оставшиеся пересечения отсекает блокировка движка.
    """
    global _scheduler
    if _scheduler:
        return _scheduler
    tz = pytz.timezone(settings.timezone)
    _scheduler = AsyncIOScheduler(timezone=tz)
    _scheduler.add_job(
        job_check_profiles,
        IntervalTrigger(minutes=settings.check_interval, timezone=tz),
        args=[engine],
        id=CHECK_JOB_ID,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(tz),
    )
    _scheduler.start()
    logger.info(f"Scheduler started: profile check every {settings.check_interval} min")
    return _scheduler


def shutdown_scheduler() -> None:
    global _scheduler
    if _scheduler:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("Scheduler stopped")
