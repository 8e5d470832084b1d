"""
WSGI config for the ETA backend. Exposes the module-level ``application``.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "eta_backend.settings")

application = get_wsgi_application()
