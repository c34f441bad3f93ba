import hmac

from django.conf import settings
from rest_framework.permissions import BasePermission

CRON_SECRET_HEADER = "X-Cron-Secret"


class HasCronSecret(BasePermission):
    """
    Gate for scheduler-triggered endpoints.
    With no CRON_SECRET configured the endpoint is open.
    """
    message = "Unauthorized"

    def has_permission(self, request, view):
        expected = getattr(settings, "CRON_SECRET", "") or ""
        if not expected:
            return True
        provided = request.headers.get(CRON_SECRET_HEADER, "") or ""
        return hmac.compare_digest(provided.encode(), expected.encode())
