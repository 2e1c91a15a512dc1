"""
WSGI config for review_assigner project.
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'review_assigner.settings')

application = get_wsgi_application()
