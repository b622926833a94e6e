"""
Role checks for the dispatcher backend.

Every protected endpoint pairs ``IsAuthenticated`` with one of these so that
a missing session answers 401 and a wrong role answers 403.
"""
import hmac

from django.conf import settings
from rest_framework.permissions import BasePermission

BILLING_ROLES = {"dispatcher", "admin"}


class IsDispatcher(BasePermission):
    """Allow access only to users whose role column is ``dispatcher``."""
    message = "Dispatcher access required"

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) == "dispatcher")


class IsBillingStaff(BasePermission):
    """Dispatchers and admins; used for check payment verification."""
    message = "Access denied - dispatcher role required"

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        user = getattr(request, "user", None)
        return bool(user and user.is_authenticated and getattr(user, "role", None) in BILLING_ROLES)


def has_service_key(request) -> bool:
    expected = getattr(settings, "INTERNAL_API_KEY", "")
    supplied = request.headers.get("X-Service-Key", "")
    return bool(expected and supplied and hmac.compare_digest(expected, supplied))


class HasServiceKeyOrDispatcher(BasePermission):
    """Sibling apps call push endpoints with ``X-Service-Key``; dispatchers may too."""
    message = "Service key or dispatcher session required"

    def has_permission(self, request, view) -> bool:  # type: ignore[override]
        if has_service_key(request):
            return True
        return IsDispatcher().has_permission(request, view)
