import pytest
from cryptography.fernet import Fernet

from santadraw.extensions import db
from santadraw.models import Assignment
from santadraw.security import open_assignment, seal_assignment
from santadraw.services.draw import execute_draw, get_receiver_for

from conftest import OWNER


def test_seal_and_open(app):
    token = seal_assignment(1, 10, 42)
    assert "42" not in token
    assert open_assignment(token, 1, 10) == 42


def test_tampered_token_rejected(app):
    token = seal_assignment(1, 10, 7)
    with pytest.raises(ValueError):
        open_assignment(token[:-4] + "AAAA", 1, 10)


def test_token_bound_to_giver(app):
    token = seal_assignment(1, 10, 7)
    with pytest.raises(ValueError):
        open_assignment(token, 1, 11)


def test_token_bound_to_group(app):
    token = seal_assignment(1, 10, 7)
    with pytest.raises(ValueError):
        open_assignment(token, 2, 10)


def test_key_derives_from_secret_key(app):
    token = seal_assignment(1, 10, 3)
    app.config["SECRET_KEY"] = "rotated"
    with pytest.raises(ValueError):
        open_assignment(token, 1, 10)


def test_configured_key_wins(app):
    app.config["ASSIGNMENT_ENC_KEY"] = Fernet.generate_key().decode()
    token = seal_assignment(1, 10, 9)

    app.config["SECRET_KEY"] = "irrelevant"
    assert open_assignment(token, 1, 10) == 9


def test_old_key_still_opens_after_rotation(app):
    old_key = Fernet.generate_key().decode()
    app.config["ASSIGNMENT_ENC_KEY"] = old_key
    token = seal_assignment(1, 10, 5)

    app.config["ASSIGNMENT_ENC_KEY"] = f"{Fernet.generate_key().decode()},{old_key}"
    assert open_assignment(token, 1, 10) == 5


def test_swapped_ciphertexts_are_rejected(group_with_members):
    group = group_with_members
    execute_draw(group, OWNER)

    first, second = Assignment.query.filter_by(group_id=group.id).order_by(Assignment.id).limit(2).all()
    first.receiver_ciphertext, second.receiver_ciphertext = second.receiver_ciphertext, first.receiver_ciphertext
    db.session.commit()

    with pytest.raises(ValueError):
        get_receiver_for(first.giver)
