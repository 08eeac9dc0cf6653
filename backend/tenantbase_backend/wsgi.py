"""WSGI entrypoint for the Tenantbase backend."""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tenantbase_backend.settings")

application = get_wsgi_application()
