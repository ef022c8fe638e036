"""
Celery configuration for the payments service.

Background work for the payment engine runs here:
- Re-dispatching webhook events whose handlers failed
- Reconciling payments that never received a terminal webhook
- Purging webhook events past the de-duplication retention window

Periodic schedules live in django-celery-beat's database tables and are
created by payments migrations, so operators can tune them from the admin.

For more information, see:
https://docs.celeryq.dev/en/stable/django/first-steps-with-django.html
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

# Picks up payments.tasks
app.autodiscover_tasks()
