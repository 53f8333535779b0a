from datetime import datetime

from .extensions import db

GROUP_COLLECTING = "collecting"
GROUP_DRAWN = "drawn"

INVITE_SENT = "sent"
INVITE_CONFIRMED = "confirmed"
INVITE_DECLINED = "declined"


def _iso(value):
    return value.isoformat() if value else None


class Group(db.Model):
    __tablename__ = "groups"

    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(96), unique=True, nullable=False)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Opaque id handed to us by the auth service
    owner_id = db.Column(db.String(64), nullable=False, index=True)
    owner_email = db.Column(db.String(255), nullable=True)

    budget_min = db.Column(db.Float, default=0, nullable=False)
    budget_max = db.Column(db.Float, default=0, nullable=False)
    signup_deadline = db.Column(db.Date, nullable=True)
    draw_date = db.Column(db.Date, nullable=True)
    expected_participants = db.Column(db.Integer, default=3, nullable=False)

    status = db.Column(db.String(16), default=GROUP_COLLECTING, nullable=False)
    drawn_at = db.Column(db.DateTime, nullable=True)
    draw_seed = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    members = db.relationship(
        "GroupMember",
        back_populates="group",
        order_by="GroupMember.id",
        cascade="all, delete-orphan",
    )

    @property
    def is_drawn(self) -> bool:
        return self.status == GROUP_DRAWN

    def confirmed_members(self) -> list["GroupMember"]:
        return [m for m in self.members if m.invite_status == INVITE_CONFIRMED]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "slug": self.slug,
            "name": self.name,
            "description": self.description,
            "owner_id": self.owner_id,
            "budget_min": float(self.budget_min or 0),
            "budget_max": float(self.budget_max or 0),
            "signup_deadline": _iso(self.signup_deadline),
            "draw_date": _iso(self.draw_date),
            "expected_participants": self.expected_participants,
            "status": self.status,
            "drawn_at": _iso(self.drawn_at),
        }


class GroupMember(db.Model):
    __tablename__ = "group_members"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    user_id = db.Column(db.String(64), nullable=True, index=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    wishlist_url = db.Column(db.String(512), nullable=True)
    notification_preference = db.Column(db.String(16), default="email", nullable=False)

    invite_status = db.Column(db.String(16), default=INVITE_SENT, nullable=False)
    invite_token = db.Column(db.String(64), unique=True, nullable=False)

    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    group = db.relationship("Group", back_populates="members")

    __table_args__ = (
        db.UniqueConstraint("group_id", "email", name="uq_group_members_group_email"),
        db.UniqueConstraint("group_id", "user_id", name="uq_group_members_group_user"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "wishlist_url": self.wishlist_url,
            "invite_status": self.invite_status,
        }


class Assignment(db.Model):
    __tablename__ = "assignments"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    giver_member_id = db.Column(
        db.Integer, db.ForeignKey("group_members.id", ondelete="CASCADE"), nullable=False
    )
    # Sealed group:giver:receiver token (see security.py); never plaintext.
    receiver_ciphertext = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    giver = db.relationship("GroupMember", foreign_keys=[giver_member_id])

    __table_args__ = (
        db.UniqueConstraint("group_id", "giver_member_id", name="uq_assignments_group_giver"),
    )


class AuditLog(db.Model):
    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=True)
    actor_user_id = db.Column(db.String(64), nullable=True)
    event_type = db.Column(db.String(64), nullable=False)
    # "metadata" is reserved on declarative models
    event_metadata = db.Column("metadata", db.JSON, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)


class Notification(db.Model):
    __tablename__ = "notifications"

    id = db.Column(db.Integer, primary_key=True)
    group_id = db.Column(db.Integer, db.ForeignKey("groups.id", ondelete="CASCADE"), nullable=False)
    type = db.Column(db.String(32), nullable=False)
    channel = db.Column(db.String(16), default="email", nullable=False)
    to_email = db.Column(db.String(255), nullable=True)
    to_phone = db.Column(db.String(32), nullable=True)
    template_name = db.Column(db.String(64), nullable=False)
    payload = db.Column(db.JSON, nullable=False)
    status = db.Column(db.String(16), default="queued", nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
