"""
Add celery-beat schedules for payment maintenance tasks.

Creates three periodic tasks:
- Purge expired webhook events (hourly)
- Retry failed webhook events (every 10 minutes)
- Reconcile open payments against the provider (every 30 minutes)
"""

from django.db import migrations

SCHEDULES = [
    {
        "name": "Purge Expired Webhook Events",
        "task": "payments.tasks.purge_expired_webhook_events",
        "every": 60,
        "description": (
            "Deletes processed webhook events older than the retention "
            "window. Redeliveries inside the window stay de-duplicated."
        ),
    },
    {
        "name": "Retry Failed Webhook Events",
        "task": "payments.tasks.retry_failed_webhook_events",
        "every": 10,
        "description": (
            "Re-dispatches failed webhook events that have retries left."
        ),
    },
    {
        "name": "Reconcile Open Payments",
        "task": "payments.tasks.reconcile_open_payments",
        "every": 30,
        "description": (
            "Polls the provider for payments still open after the stale "
            "threshold and applies any status change."
        ),
    },
]


def create_periodic_tasks(apps, schema_editor):
    """Create the periodic tasks for payment maintenance."""
    IntervalSchedule = apps.get_model("django_celery_beat", "IntervalSchedule")
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    for entry in SCHEDULES:
        schedule, _ = IntervalSchedule.objects.get_or_create(
            every=entry["every"],
            period="minutes",
        )
        PeriodicTask.objects.get_or_create(
            name=entry["name"],
            defaults={
                "task": entry["task"],
                "interval": schedule,
                "enabled": True,
                "description": entry["description"],
            },
        )


def remove_periodic_tasks(apps, schema_editor):
    """Remove the periodic tasks on migration rollback."""
    PeriodicTask = apps.get_model("django_celery_beat", "PeriodicTask")

    PeriodicTask.objects.filter(
        name__in=[entry["name"] for entry in SCHEDULES],
    ).delete()


class Migration(migrations.Migration):
    dependencies = [
        ("payments", "0001_initial"),
        ("django_celery_beat", "0019_alter_periodictasks_options"),
    ]

    operations = [
        migrations.RunPython(create_periodic_tasks, remove_periodic_tasks),
    ]
