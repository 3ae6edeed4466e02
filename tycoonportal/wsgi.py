"""
WSGI config for the tycoonportal project.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "tycoonportal.settings")

application = get_wsgi_application()
