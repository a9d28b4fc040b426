# tests/test_errors.py
import pytest
from sqlalchemy.exc import IntegrityError

from backoffice import db
from backoffice.models import Client
from backoffice.services.errors import (
    MESSAGES,
    UNEXPECTED_MESSAGE,
    classify_error,
    get_user_friendly_error,
    sanitize_error_for_logging,
    handle_service_error,
)


@pytest.mark.parametrize(
    "error,kind",
    [
        ({"code": "23505", "message": ""}, "unique"),
        ({"message": 'duplicate key value violates unique constraint "clients_pkey"'}, "unique"),
        ({"code": "23503"}, "foreign_key"),
        ({"code": "23502"}, "not_null"),
        ({"code": "23514"}, "check"),
        ({"message": "new row violates row-level security policy"}, "permission"),
        ({"message": "JWT expired"}, "session_expired"),
        ({"message": "Invalid login credentials"}, "invalid_credentials"),
        ({"message": "Email not confirmed"}, "email_not_confirmed"),
        ({"message": "User already registered"}, "user_exists"),
        ({"message": "Password should be at least 6 characters"}, "weak_password"),
        ({"message": "Too many requests"}, "rate_limit"),
        ({"message": "Failed to fetch"}, "network"),
        ({"message": "Bucket not found"}, "storage"),
        ({"message": "Payload too large"}, "file_too_large"),
        ({"message": "something odd happened"}, "unknown"),
        (Exception("UNIQUE constraint failed: clients.identification"), "unique"),
        (Exception("FOREIGN KEY constraint failed"), "foreign_key"),
    ],
)
def test_classification(error, kind):
    assert classify_error(error) == kind
    assert get_user_friendly_error(error) == MESSAGES[kind]


def test_no_error_gives_unexpected_message():
    assert classify_error(None) is None
    assert get_user_friendly_error(None) == UNEXPECTED_MESSAGE


def test_sanitized_log_record_hides_message():
    record = sanitize_error_for_logging({"code": "23505", "message": "secret detail"})
    assert record["code"] == "23505"
    assert record["has_message"] is True
    assert "secret detail" not in str(record)


def test_handle_service_error_rolls_back_and_maps_status(app):
    db.session.add(Client(first_name="Ana", last_name="Pérez", identification="V-1"))
    db.session.commit()
    db.session.add(Client(first_name="Otra", last_name="Persona", identification="V-1"))
    try:
        db.session.commit()
    except IntegrityError as e:
        payload, status = handle_service_error(e, "Error saving client")

    assert status == 409
    assert payload == {"success": False, "error": MESSAGES["unique"]}
    assert Client.query.count() == 1
