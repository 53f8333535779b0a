from __future__ import annotations

import logging
from datetime import datetime

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..derangement import SHUFFLE_STRATEGIES, DrawResult, Participant, generate
from ..extensions import db
from ..models import Assignment, Group, GroupMember, GROUP_COLLECTING, GROUP_DRAWN
from ..security import open_assignment, seal_assignment
from .audit import log_audit
from .groups import DrawAlreadyExecutedError, ensure_collecting
from .notifications import send_assignment_notification

logger = logging.getLogger(__name__)


class DrawPersistenceError(RuntimeError):
    pass


def _draw_options() -> dict:
    cfg = current_app.config
    strategy = cfg.get("DRAW_SHUFFLE_STRATEGY", "restricted")
    if strategy not in SHUFFLE_STRATEGIES:
        raise ValueError(f"Unknown DRAW_SHUFFLE_STRATEGY {strategy!r}")
    return {
        "min_size": int(cfg.get("DRAW_MIN_PARTICIPANTS", 3)),
        "max_attempts": int(cfg.get("DRAW_MAX_ATTEMPTS", 10)),
        "shuffle": SHUFFLE_STRATEGIES[strategy],
    }


def _persist(group: Group, result: DrawResult) -> None:
    # Claim the group first: only one caller can move it out of "collecting".
    claimed = (
        Group.query.filter_by(id=group.id, status=GROUP_COLLECTING)
        .update(
            {"status": GROUP_DRAWN, "drawn_at": datetime.utcnow(), "draw_seed": result.seed},
            synchronize_session=False,
        )
    )
    if claimed != 1:
        db.session.rollback()
        raise DrawAlreadyExecutedError("The draw for this group has already been executed.")

    for pair in result.assignments:
        db.session.add(
            Assignment(
                group_id=group.id,
                giver_member_id=pair.giver.id,
                receiver_ciphertext=seal_assignment(group.id, pair.giver.id, pair.receiver.id),
                created_at=pair.created_at.replace(tzinfo=None),
            )
        )
    db.session.commit()


def _notify_givers(group: Group, result: DrawResult, members: dict[int, GroupMember]) -> None:
    try:
        for pair in result.assignments:
            send_assignment_notification(
                group, members[pair.giver.id], members[pair.receiver.id], commit=False
            )
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        logger.exception("Draw for group %s succeeded but notifications could not be queued", group.slug)


def execute_draw(group: Group, actor_user_id: str) -> DrawResult:
    """
    Run the draw for a group and commit it.

    Generator failures propagate before anything is written. The status flip
    and the assignment rows share one transaction, so a failed commit leaves
    the group collecting with no assignments. Audit and notifications run
    after the commit and cannot undo it.
    """
    ensure_collecting(group)

    confirmed = group.confirmed_members()
    members = {m.id: m for m in confirmed}
    participants = [Participant(id=m.id, name=m.name) for m in confirmed]

    result = generate(participants, **_draw_options())

    try:
        _persist(group, result)
    except SQLAlchemyError as e:
        db.session.rollback()
        raise DrawPersistenceError("The draw could not be saved. The group was not changed.") from e

    logger.info(
        "Draw executed for group %s: %d assignments, seed=%s, attempts=%d",
        group.slug, len(result.assignments), result.seed, result.attempts,
    )

    log_audit(
        group.id,
        actor_user_id,
        "draw_executed",
        {"seed": result.seed, "participants": len(result.assignments)},
    )
    _notify_givers(group, result, members)
    return result


def get_receiver_for(member: GroupMember) -> GroupMember | None:
    """The member this giver draws, or None before the draw."""
    assignment = Assignment.query.filter_by(group_id=member.group_id, giver_member_id=member.id).first()
    if not assignment:
        return None
    receiver_id = open_assignment(assignment.receiver_ciphertext, member.group_id, member.id)
    return db.session.get(GroupMember, receiver_id)
