from celery import Celery
from celery.schedules import crontab

from scriib.settings import settings

celery = Celery("scriib_beat", broker=settings.redis_url)
celery.conf.timezone = "UTC"

celery.conf.beat_schedule = {
    "process-scheduled-posts": {
        "task": "tasks.process_scheduled_posts",
        "schedule": crontab(minute="*"),
    },
    "execute-campaigns": {
        "task": "tasks.execute_campaigns",
        "schedule": crontab(minute="*/15", hour="13-22"),
    },
    "check-replies": {
        "task": "tasks.check_replies",
        "schedule": crontab(minute=5),
    },
    "sms-approval-reminders": {
        "task": "tasks.send_approval_reminders",
        "schedule": crontab(hour=14, minute=0),
    },
    "viral-posts-daily": {
        "task": "tasks.viral_posts_daily",
        "schedule": crontab(hour=11, minute=30),
    },
}
