"""
WSGI config for the dispatcher backend.

It exposes the WSGI callable as a module-level variable named ``application``.
"""
import os

from django.core.wsgi import get_wsgi_application  # type: ignore

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'dispatchdesk.settings')

application = get_wsgi_application()
