"""
WSGI entry point for the clinic payments backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "clinipay_backend.settings.dev")

application = get_wsgi_application()
