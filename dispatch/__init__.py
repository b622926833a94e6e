"""Dispatch application for the transport dispatcher backend.

Models, services, views and route registrations behind the dispatcher
web app: trip approval, driver assignment, billing and notifications.
"""
