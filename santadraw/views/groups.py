from __future__ import annotations

from flask import Blueprint, g, jsonify, request

from ..models import Assignment, Group
from ..policies import GroupOwnerRequiredMixin, UserRequiredMixin
from ..services.draw import execute_draw
from ..services.groups import (
    SETTINGS_FIELDS,
    create_group,
    invite_member,
    send_reminders,
    update_settings,
)

groups_bp = Blueprint("groups", __name__, url_prefix="/groups")


def _payload() -> dict:
    return request.get_json(silent=True) or {}


def _settings_payload() -> dict:
    return {k: v for k, v in _payload().items() if k in SETTINGS_FIELDS}


class GroupListView(UserRequiredMixin):
    def get(self):
        groups = (
            Group.query.filter_by(owner_id=g.user_id)
            .order_by(Group.created_at.desc(), Group.id.desc())
            .all()
        )
        return jsonify({"groups": [group.to_dict() for group in groups]})

    def post(self):
        group = create_group(g.user_id, _payload().get("owner_email"), **_settings_payload())
        return jsonify(group.to_dict()), 201


class GroupDetailView(GroupOwnerRequiredMixin):
    def get(self, slug: str):
        group = g.group
        return jsonify(
            {
                **group.to_dict(),
                "members": [m.to_dict() for m in group.members],
                "confirmed_count": len(group.confirmed_members()),
                "assignment_count": Assignment.query.filter_by(group_id=group.id).count(),
            }
        )

    def patch(self, slug: str):
        group = update_settings(g.group, g.user_id, **_settings_payload())
        return jsonify(group.to_dict())


class InviteView(GroupOwnerRequiredMixin):
    def post(self, slug: str):
        data = _payload()
        member = invite_member(g.group, g.user_id, data.get("email"), data.get("name"))
        return jsonify(member.to_dict()), 201


class RemindersView(GroupOwnerRequiredMixin):
    def post(self, slug: str):
        return jsonify({"sent": send_reminders(g.group, g.user_id)})


class DrawView(GroupOwnerRequiredMixin):
    def post(self, slug: str):
        result = execute_draw(g.group, g.user_id)
        # Pairings stay secret; each giver reads theirs from /g/<slug>/my
        return jsonify({"seed": result.seed, "assignments": len(result.assignments)}), 201


groups_bp.add_url_rule("", view_func=GroupListView.as_view("list"), methods=["GET", "POST"])
groups_bp.add_url_rule("/<slug>", view_func=GroupDetailView.as_view("detail"), methods=["GET", "PATCH"])
groups_bp.add_url_rule("/<slug>/invites", view_func=InviteView.as_view("invite"), methods=["POST"])
groups_bp.add_url_rule("/<slug>/reminders", view_func=RemindersView.as_view("reminders"), methods=["POST"])
groups_bp.add_url_rule("/<slug>/draw", view_func=DrawView.as_view("draw"), methods=["POST"])
