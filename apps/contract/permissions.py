from rest_framework.permissions import BasePermission


class IsContractParty(BasePermission):
    """Client or freelancer on the contract; admins always pass."""

    def has_object_permission(self, request, view, obj):
        user = request.user
        if user.has_admin_access():
            return True
        return obj.is_party(user)
