"""Custom DRF permissions and role scoping for the sign CRM API."""
from rest_framework.permissions import BasePermission

PAY_MANAGER_ROLES = ("ADMIN", "G", "KD", "DO")


def can_view_workspace(user, workspace_id) -> bool:
    if user.sees_all_workspaces:
        return True
    return workspace_id is not None and user.workspace_id == workspace_id


def can_view_group(user, group) -> bool:
    """Company-wide roles see every team, the sales director their business line, others their team."""
    if user.sees_all_workspaces:
        return True
    if user.sees_whole_workspace:
        return group.workspace_id == user.workspace_id
    return user.group_id == group.id


def can_view_user(user, target) -> bool:
    if user.pk == target.pk or user.sees_all_workspaces:
        return True
    if user.sees_whole_workspace:
        return target.workspace_id == user.workspace_id
    if user.role == "ROP":
        return target.group_id is not None and target.group_id == user.group_id
    return False


class SeesFinance(BasePermission):
    """Allow the P&L only to administrators and the owner."""

    message = "Acces reserve a la direction financiere."

    def has_permission(self, request, view):
        user = request.user
        return bool(user and user.is_authenticated and user.sees_finance)


class CanManagePay(BasePermission):
    """Plans and salary corrections are edited by directors and administrators."""

    message = "Acces reserve aux directeurs et administrateurs."

    def has_permission(self, request, view):
        user = request.user
        if not (user and user.is_authenticated):
            return False
        return user.is_superuser or user.role in PAY_MANAGER_ROLES

    def has_object_permission(self, request, view, obj):
        return can_view_user(request.user, obj.user)
