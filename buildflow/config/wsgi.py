"""
WSGI config for the BuildFlow CRM backend.
"""
import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'buildflow.config.settings')

application = get_wsgi_application()
