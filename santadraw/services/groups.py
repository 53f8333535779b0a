from __future__ import annotations

import re
import secrets
from datetime import date

from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import (
    Group,
    GroupMember,
    GROUP_COLLECTING,
    INVITE_CONFIRMED,
    INVITE_DECLINED,
    INVITE_SENT,
)
from .audit import log_audit
from .notifications import send_invite_notification, send_reminder_notification


class GroupError(RuntimeError):
    pass


class GroupValidationError(GroupError):
    pass


class GroupStateError(GroupError):
    pass


class DrawAlreadyExecutedError(GroupStateError):
    pass


class DuplicateInviteError(GroupError):
    pass


class InviteNotFoundError(GroupError):
    pass


SETTINGS_FIELDS = (
    "name",
    "description",
    "budget_min",
    "budget_max",
    "signup_deadline",
    "draw_date",
    "expected_participants",
)

_SLUG_STRIP = re.compile(r"[^\w-]+")


def make_slug(name: str) -> str:
    base = _SLUG_STRIP.sub("", name.lower().replace(" ", "-"))
    return f"{base}-{secrets.token_hex(3)}"


def _parse_date(value) -> date | None:
    if value in (None, ""):
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError as e:
        raise GroupValidationError(f"Invalid date: {value!r}") from e


def _parse_amount(value) -> float:
    try:
        return float(value) if value not in (None, "") else 0.0
    except (TypeError, ValueError) as e:
        raise GroupValidationError(f"Invalid amount: {value!r}") from e


def _text(value, field: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise GroupValidationError(f"{field} must be text.")
    return value.strip()


def _clean_settings(fields: dict) -> dict:
    clean = {}
    for key, value in fields.items():
        if key not in SETTINGS_FIELDS:
            continue
        if key in ("signup_deadline", "draw_date"):
            value = _parse_date(value)
        elif key in ("budget_min", "budget_max"):
            value = _parse_amount(value)
        elif key == "description":
            value = _text(value, "description") or None
        elif key == "expected_participants":
            try:
                value = int(value) if value not in (None, "") else 3
            except (TypeError, ValueError) as e:
                raise GroupValidationError("expected_participants must be a number.") from e
        elif key == "name":
            value = _text(value, "name")
            if not value:
                raise GroupValidationError("Group name is required.")
        clean[key] = value
    return clean


def _check_budget(group: Group) -> None:
    if group.budget_min and group.budget_max and group.budget_min > group.budget_max:
        raise GroupValidationError("budget_min cannot exceed budget_max.")


def ensure_collecting(group: Group) -> None:
    if group.is_drawn:
        raise DrawAlreadyExecutedError("The draw for this group has already been executed.")


def create_group(owner_id: str, owner_email: str | None = None, **fields) -> Group:
    if not _text(fields.get("name"), "name"):
        raise GroupValidationError("Group name is required.")

    group = Group(
        owner_id=owner_id,
        owner_email=owner_email,
        status=GROUP_COLLECTING,
        **_clean_settings(fields),
    )
    group.slug = make_slug(group.name)
    _check_budget(group)

    db.session.add(group)
    db.session.commit()

    log_audit(group.id, owner_id, "group_created", {"name": group.name})
    return group


def get_group_by_slug(slug: str) -> Group | None:
    return Group.query.filter_by(slug=slug).first()


def update_settings(group: Group, actor_user_id: str, **fields) -> Group:
    ensure_collecting(group)
    for key, value in _clean_settings(fields).items():
        setattr(group, key, value)
    _check_budget(group)
    db.session.commit()

    log_audit(group.id, actor_user_id, "group_settings_updated")
    return group


def invite_member(group: Group, actor_user_id: str, email: str, name: str | None = None) -> GroupMember:
    ensure_collecting(group)

    email = _text(email, "email").lower()
    if not email or "@" not in email:
        raise GroupValidationError("A valid e-mail is required.")

    if GroupMember.query.filter_by(group_id=group.id, email=email).first():
        raise DuplicateInviteError("This e-mail has already been invited.")

    member = GroupMember(
        group_id=group.id,
        email=email,
        name=_text(name, "name") or email.split("@")[0],
        invite_status=INVITE_SENT,
        invite_token=secrets.token_urlsafe(24),
    )
    db.session.add(member)
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise DuplicateInviteError("This e-mail has already been invited.") from e

    send_invite_notification(group, member)
    log_audit(group.id, actor_user_id, "member_invited", {"email": email})
    return member


def _member_by_token(group: Group, token: str | None) -> GroupMember:
    member = None
    if token:
        member = GroupMember.query.filter_by(group_id=group.id, invite_token=token).first()
    if not member:
        raise InviteNotFoundError("Invite not found for this group.")
    return member


def confirm_member(
    group: Group,
    token: str | None,
    user_id: str,
    *,
    agreed: bool,
    name: str | None = None,
    wishlist_url: str | None = None,
    phone: str | None = None,
) -> GroupMember:
    """Accept an invite. Confirming twice is a no-op returning the member."""
    member = _member_by_token(group, token)
    if member.invite_status == INVITE_CONFIRMED:
        return member

    ensure_collecting(group)
    if not agreed:
        raise GroupValidationError("You must accept the terms to join the group.")

    name = _text(name, "name")
    wishlist_url = _text(wishlist_url, "wishlist_url")
    phone = _text(phone, "phone")

    # One seat per person per group.
    taken = (
        GroupMember.query.filter(
            GroupMember.group_id == group.id,
            GroupMember.user_id == user_id,
            GroupMember.id != member.id,
        )
        .first()
    )
    if taken:
        raise DuplicateInviteError("You have already joined this group with another invite.")

    member.user_id = user_id
    member.name = name or member.name
    member.wishlist_url = wishlist_url or None
    member.phone = phone or None
    member.invite_status = INVITE_CONFIRMED
    try:
        db.session.commit()
    except IntegrityError as e:
        db.session.rollback()
        raise DuplicateInviteError("You have already joined this group with another invite.") from e

    log_audit(group.id, user_id, "member_confirmed", {"name": member.name})
    return member


def decline_member(group: Group, token: str | None) -> GroupMember:
    member = _member_by_token(group, token)
    ensure_collecting(group)

    member.invite_status = INVITE_DECLINED
    db.session.commit()

    log_audit(group.id, member.user_id, "member_declined", {"name": member.name})
    return member


def send_reminders(group: Group, actor_user_id: str) -> int:
    ensure_collecting(group)
    pending = [m for m in group.members if m.invite_status == INVITE_SENT]
    for member in pending:
        send_reminder_notification(group, member, commit=False)
    db.session.commit()

    log_audit(group.id, actor_user_id, "reminders_sent", {"count": len(pending)})
    return len(pending)
