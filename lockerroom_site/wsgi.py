"""
WSGI config for the LockerRoom API.

Served by gunicorn (see gunicorn.conf.py):
    gunicorn lockerroom_site.wsgi:application
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'lockerroom_site.settings')

application = get_wsgi_application()
