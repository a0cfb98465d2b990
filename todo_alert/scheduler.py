# PURPOSE: run the alert engine once per interval in a background thread.
# One job, max_instances=1 and coalesce=True: ticks never overlap, missed ones collapse.

import logging
from datetime import datetime

from apscheduler.schedulers.background import BackgroundScheduler

from .alerts import AlertEngine, AlertPolicy, SqlAlchemyTaskStore, build_channels
from .config import Settings
from .db import SessionLocal

logger = logging.getLogger(__name__)

JOB_ID = "alert-tick"


def build_engine(settings: Settings, session_factory=SessionLocal) -> AlertEngine:
    channels = build_channels(settings)
    logger.info("alert channels configured=%s", ",".join(c.name for c in channels) or "none")
    return AlertEngine(
        SqlAlchemyTaskStore(session_factory),
        channels,
        AlertPolicy.from_settings(settings),
    )


def create_scheduler(engine: AlertEngine, interval_seconds: int = 60) -> BackgroundScheduler:
    scheduler = BackgroundScheduler()
    scheduler.add_job(
        engine.run_tick,
        "interval",
        seconds=interval_seconds,
        id=JOB_ID,
        max_instances=1,
        coalesce=True,
        next_run_time=datetime.now(),
    )
    return scheduler


def start(engine: AlertEngine, settings: Settings) -> BackgroundScheduler:
    scheduler = create_scheduler(engine, settings.SCHEDULER_INTERVAL_SECONDS)
    scheduler.start()
    logger.info("alert scheduler started interval_seconds=%s", settings.SCHEDULER_INTERVAL_SECONDS)
    return scheduler


def stop(scheduler: BackgroundScheduler, engine: AlertEngine) -> None:
    scheduler.shutdown(wait=False)
    engine.close()
    logger.info("alert scheduler stopped")
