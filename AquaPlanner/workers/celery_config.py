from datetime import timedelta

from celery import Celery
from celery.schedules import crontab
from celery.signals import after_setup_logger
from config.settings import settings
from utils.logging_config import setup_logging
import sys
from pathlib import Path

app = Celery(
    'aquaplanner',
    broker=settings.REDIS_URL or 'redis://localhost:6380/0',
    backend=settings.REDIS_URL or 'redis://localhost:6380/0',
)

app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone=settings.APP_TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutos hard limit
    task_soft_time_limit=25 * 60,  # 25 minutos soft timeout
)

if settings.REFRESH_ENABLED:
    app.conf.beat_schedule = {
        'refresh-stale-snapshots': {
            'task': 'workers.tasks.refresh_stale_snapshots_task',
            'schedule': timedelta(minutes=settings.REFRESH_INTERVAL_MINUTES),
        },
        'cleanup-old-snapshots': {
            'task': 'workers.tasks.cleanup_snapshots_task',
            'schedule': crontab(hour=3, minute=0),
        },
    }


@after_setup_logger.connect
def _configure_logging(logger=None, **kwargs):
    setup_logging(settings.LOG_LEVEL)


# Asegurar que AquaPlanner está en el path
sys.path.insert(0, str(Path(__file__).parent.parent))

app.autodiscover_tasks(['workers'])
