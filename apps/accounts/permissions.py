from rest_framework.permissions import BasePermission

from .policies import is_allowed


class PolicyPermission(BasePermission):
    """
    Evaluates apps.accounts.policies.is_allowed for the current view action.

    Views declare `policy_actions = {"list": Action.ORDER_VIEW, ...}`.
    An action missing from the mapping is denied.
    """
    message = "You do not have permission to perform this action."

    def _policy_action(self, view):
        view_action = getattr(view, "action", None) or view.request.method.lower()
        return getattr(view, "policy_actions", {}).get(view_action)

    def has_permission(self, request, view):
        action = self._policy_action(view)
        return action is not None and is_allowed(request.user, action)

    def has_object_permission(self, request, view, obj):
        action = self._policy_action(view)
        return action is not None and is_allowed(request.user, action, obj)
