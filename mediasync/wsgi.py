"""
WSGI entry point for the mediasync project.

The huey consumer runs separately: python manage.py run_huey
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "mediasync.settings")

application = get_wsgi_application()
