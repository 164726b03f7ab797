"""
Celery Beat Schedule Configuration

Defines periodic tasks that run on a schedule.
"""

from celery.schedules import crontab

# Schedule configuration
beat_schedule = {
    # Learning update - daily at 3 AM UTC, after the night's syncs
    'run-learning-updates': {
        'task': 'learning.run_learning_updates',
        'schedule': crontab(hour=3, minute=0),
    },
    # Wodify roster sync - every 6 hours for connected gyms
    'run-scheduled-wodify-syncs': {
        'task': 'sync.run_scheduled_wodify_syncs',
        'schedule': crontab(minute=15, hour='*/6'),
    },
}
