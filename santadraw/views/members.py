from __future__ import annotations

from flask import Blueprint, abort, g, jsonify, request
from flask.views import MethodView

from ..models import GroupMember, INVITE_CONFIRMED
from ..policies import UserRequiredMixin, load_group_or_404
from ..services.draw import get_receiver_for
from ..services.groups import confirm_member, decline_member

members_bp = Blueprint("members", __name__, url_prefix="/g")


class JoinView(UserRequiredMixin):
    def post(self, slug: str):
        group = load_group_or_404(slug)
        data = request.get_json(silent=True) or {}
        member = confirm_member(
            group,
            data.get("token") or request.args.get("token"),
            g.user_id,
            agreed=bool(data.get("agreed")),
            name=data.get("name"),
            wishlist_url=data.get("wishlist_url"),
            phone=data.get("phone"),
        )
        return jsonify(member.to_dict())


class DeclineView(MethodView):
    def post(self, slug: str):
        group = load_group_or_404(slug)
        data = request.get_json(silent=True) or {}
        member = decline_member(group, data.get("token") or request.args.get("token"))
        return jsonify(member.to_dict())


class MyAssignmentView(UserRequiredMixin):
    def get(self, slug: str):
        group = load_group_or_404(slug)
        member = GroupMember.query.filter_by(
            group_id=group.id, user_id=g.user_id, invite_status=INVITE_CONFIRMED
        ).first()
        if member is None:
            abort(404, description="You are not a member of this group. Use your invite link to join.")

        receiver = get_receiver_for(member) if group.is_drawn else None
        return jsonify(
            {
                "group": group.to_dict(),
                "status": group.status,
                "receiver": receiver.to_dict() if receiver else None,
            }
        )


members_bp.add_url_rule("/<slug>/join", view_func=JoinView.as_view("join"), methods=["POST"])
members_bp.add_url_rule("/<slug>/decline", view_func=DeclineView.as_view("decline"), methods=["POST"])
members_bp.add_url_rule("/<slug>/my", view_func=MyAssignmentView.as_view("my_assignment"))
