# backoffice/services/jit_provisioning.py
"""
Just-in-Time User Provisioning Service

Keeps the local `users` table in step with the Supabase Auth claims of every
authenticated request (email, username, role), keyed by the JWT 'sub' UUID.
"""

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from backoffice import db
from backoffice.models import User


class JITProvisioningError(Exception):
    """Custom exception for JIT provisioning failures"""
    def __init__(self, message, original_error=None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


def _create_user(user_id, email, username, role):
    current_app.logger.info(f"JIT Provisioning: Creating user {username} (ID: {user_id})")
    try:
        user = User(id=user_id, email=email, username=username, role=role)
        db.session.add(user)
        db.session.commit()
        return user
    except IntegrityError as e:
        # Another request may have created the row concurrently.
        db.session.rollback()
        user = db.session.get(User, user_id)
        if user is None:
            raise JITProvisioningError(
                f"Failed to create user {username} due to integrity constraint",
                original_error=e
            )
        return user


def ensure_user_synced(user_id, email, username, role):
    """
    Ensures a user row exists and mirrors the token claims.

    Returns:
        User: The synchronized ORM object

    Raises:
        JITProvisioningError: If the database sync fails
    """
    try:
        user = db.session.get(User, user_id)
        if user is None:
            user = _create_user(user_id, email, username, role)

        changes = []
        for field, value in (('email', email), ('username', username), ('role', role)):
            if getattr(user, field) != value:
                changes.append(f"{field}: {getattr(user, field)} -> {value}")
                setattr(user, field, value)

        if changes:
            current_app.logger.info(
                f"JIT Provisioning: Syncing {username} (ID: {user_id}). Changes: {', '.join(changes)}"
            )
            try:
                db.session.commit()
            except IntegrityError as e:
                db.session.rollback()
                raise JITProvisioningError(
                    f"Failed to sync user {username}: duplicate email or username",
                    original_error=e
                )

        return user

    except OperationalError as e:
        db.session.rollback()
        current_app.logger.error(f"JIT Provisioning: Database connection error for user {username}. Error: {str(e)}")
        raise JITProvisioningError("Database connection failed during user provisioning", original_error=e)
