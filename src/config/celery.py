"""Celery configuration."""
import os

from celery import Celery
from celery.schedules import crontab

os.environ.setdefault(
    "DJANGO_SETTINGS_MODULE",
    os.getenv("DJANGO_SETTINGS_MODULE", "config.settings.dev"),
)

app = Celery("signcrm")
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# Beat schedule
app.conf.beat_schedule = {
    "refresh-current-pnl-snapshots": {
        "task": "reports.tasks.refresh_current_pnl_snapshots",
        "schedule": crontab(minute=5),  # Every hour
    },
}
