"""
ASGI config for review_assigner project.
"""

import os

from django.core.asgi import get_asgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'review_assigner.settings')

application = get_asgi_application()
