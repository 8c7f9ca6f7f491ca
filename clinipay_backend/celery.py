"""
Celery configuration for the clinic payments backend.

This module defines and exposes a Celery application instance.  Celery
discovers tasks by inspecting any `tasks.py` modules in installed apps;
the periodic jobs are declared in ``CELERY_BEAT_SCHEDULE``.
"""
import os
from celery import Celery

# Set default Django settings for Celery to pick configuration from settings
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "clinipay_backend.settings.dev")

app = Celery("clinipay_backend")

# Namespacing Celery settings with the "CELERY_" prefix in Django settings
app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()
