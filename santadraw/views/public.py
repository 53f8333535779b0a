from __future__ import annotations

from flask import Blueprint, jsonify
from flask.views import MethodView

from ..models import Group, GROUP_DRAWN


public_bp = Blueprint("public", __name__)


class LandingView(MethodView):
    def get(self):
        return jsonify(
            {
                "service": "santa-draw",
                "groups": Group.query.count(),
                "groups_drawn": Group.query.filter_by(status=GROUP_DRAWN).count(),
            }
        )


public_bp.add_url_rule("/", view_func=LandingView.as_view("landing"))
