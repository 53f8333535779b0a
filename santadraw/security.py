"""
Sealed assignments.

An assignment row stores its receiver only as a Fernet token over
``group_id:giver_member_id:receiver_member_id``. Opening a token checks the
group and giver it was sealed for, so a ciphertext copied onto another row
(or into another group) is rejected instead of revealing someone else's draw.

``ASSIGNMENT_ENC_KEY`` may hold several comma-separated keys for rotation: the
first one seals, all of them open. Without it a key is derived from
``SECRET_KEY``.
"""
from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken, MultiFernet
from flask import current_app


def _derived_key(secret: str) -> bytes:
    digest = hashlib.sha256(b"santadraw-assignments|" + secret.encode("utf-8")).digest()
    return base64.urlsafe_b64encode(digest)


def _assignment_cipher() -> MultiFernet:
    configured = current_app.config.get("ASSIGNMENT_ENC_KEY") or ""
    keys = [k.strip().encode("utf-8") for k in configured.split(",") if k.strip()]
    if not keys:
        keys = [_derived_key(current_app.config.get("SECRET_KEY") or "")]
    return MultiFernet([Fernet(k) for k in keys])


def seal_assignment(group_id: int, giver_member_id: int, receiver_member_id: int) -> str:
    plaintext = f"{int(group_id)}:{int(giver_member_id)}:{int(receiver_member_id)}"
    return _assignment_cipher().encrypt(plaintext.encode("utf-8")).decode("utf-8")


def open_assignment(token: str, group_id: int, giver_member_id: int) -> int:
    """Return the receiver member id sealed for this group and giver. Raises ValueError otherwise."""
    try:
        raw = _assignment_cipher().decrypt(token.encode("utf-8")).decode("utf-8")
        sealed_group, sealed_giver, receiver = (int(part) for part in raw.split(":"))
    except (InvalidToken, ValueError, TypeError, AttributeError) as e:
        raise ValueError("Invalid assignment token") from e

    if (sealed_group, sealed_giver) != (int(group_id), int(giver_member_id)):
        raise ValueError("Assignment token was sealed for a different giver")
    return receiver
