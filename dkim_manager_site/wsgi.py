"""
WSGI entry point for the webhook server.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dkim_manager_site.settings')

application = get_wsgi_application()
