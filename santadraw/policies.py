from __future__ import annotations

from flask import abort, g, request
from flask.views import MethodView

from .models import Group
from .services.groups import get_group_by_slug

# Set by the authentication gateway in front of this service.
USER_HEADER = "X-User-Id"


def current_user_id() -> str | None:
    return (request.headers.get(USER_HEADER) or "").strip() or None


def is_group_owner(group: Group, user_id: str | None) -> bool:
    return bool(user_id) and group.owner_id == user_id


def load_group_or_404(slug: str) -> Group:
    group = get_group_by_slug(slug)
    if group is None:
        abort(404, description="Group not found.")
    return group


class UserRequiredMixin(MethodView):
    """Rejects requests that arrive without an authenticated user id."""

    def dispatch_request(self, *args, **kwargs):
        user_id = current_user_id()
        if not user_id:
            abort(401, description="Authentication required.")
        g.user_id = user_id
        return super().dispatch_request(*args, **kwargs)


class GroupOwnerRequiredMixin(UserRequiredMixin):
    """
    Resolves ``<slug>`` to ``g.group`` and allows only the group's owner.
    """
    def dispatch_request(self, *args, **kwargs):
        user_id = current_user_id()
        if not user_id:
            abort(401, description="Authentication required.")
        group = load_group_or_404(kwargs["slug"])
        if not is_group_owner(group, user_id):
            abort(403, description="Only the group owner can do that.")
        g.group = group
        return super().dispatch_request(*args, **kwargs)
