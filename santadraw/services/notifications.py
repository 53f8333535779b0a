"""
Notification outbox. Rows are queued here; delivery (email/SMS) belongs to an
external worker that reads the ``notifications`` table.
"""
from __future__ import annotations

import logging

from flask import current_app

from ..extensions import db
from ..models import Group, GroupMember, Notification

logger = logging.getLogger(__name__)


def _base_url() -> str:
    return (current_app.config.get("PUBLIC_BASE_URL") or "").rstrip("/")


def invite_link(group: Group, member: GroupMember) -> str:
    return f"{_base_url()}/g/{group.slug}/join?token={member.invite_token}"


def room_link(group: Group) -> str:
    return f"{_base_url()}/g/{group.slug}/my"


def send_notification(
    *,
    group_id: int,
    type: str,
    channel: str,
    template_name: str,
    payload: dict,
    to_email: str | None = None,
    to_phone: str | None = None,
    commit: bool = True,
) -> Notification:
    notification = Notification(
        group_id=group_id,
        type=type,
        channel=channel,
        to_email=to_email,
        to_phone=to_phone,
        template_name=template_name,
        payload=payload,
        status="queued",
    )
    db.session.add(notification)
    if commit:
        db.session.commit()

    logger.info(
        "Queued %s notification via %s to %s (template=%s)",
        type, channel, to_email or to_phone, template_name,
    )
    return notification


def send_invite_notification(group: Group, member: GroupMember, commit: bool = True) -> Notification:
    return send_notification(
        group_id=group.id,
        type="invite",
        channel="email",
        to_email=member.email,
        template_name="invite",
        payload={
            "groupName": group.name,
            "inviteLink": invite_link(group, member),
            "ownerEmail": group.owner_email,
        },
        commit=commit,
    )


def send_assignment_notification(
    group: Group, giver: GroupMember, receiver: GroupMember, commit: bool = True
) -> Notification:
    return send_notification(
        group_id=group.id,
        type="assignment",
        channel=giver.notification_preference or "email",
        to_email=giver.email,
        to_phone=giver.phone,
        template_name="assignment",
        payload={
            "groupName": group.name,
            "receiverName": receiver.name,
            "budgetMin": group.budget_min,
            "budgetMax": group.budget_max,
            "wishlistUrl": receiver.wishlist_url,
            "roomLink": room_link(group),
        },
        commit=commit,
    )


def send_reminder_notification(group: Group, member: GroupMember, commit: bool = True) -> Notification:
    deadline = group.signup_deadline.strftime("%d/%m/%Y") if group.signup_deadline else None
    return send_notification(
        group_id=group.id,
        type="reminder",
        channel="email",
        to_email=member.email,
        template_name="reminder",
        payload={
            "groupName": group.name,
            "signupDeadline": deadline,
        },
        commit=commit,
    )
