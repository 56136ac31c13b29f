"""
services/user_service.py — User profiles.

Credentials live with the external identity provider; a profile is just the
name and email the ledger shows to other members and mails notifications to.

Layer rules:
  - No Flask imports. Commits are the route's responsibility.
"""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from groupledger.app.errors import AppError, ErrorCode
from groupledger.app.models.user import User


def _duplicate_email(email: str) -> AppError:
    return AppError(
        ErrorCode.DUPLICATE_EMAIL,
        f"A user with email {email} already exists.",
        409,
        field="email",
    )


def create_user(name: str, email: str, session: Session) -> User:
    """
    Raises:
      AppError(DUPLICATE_EMAIL, 409)
    """
    email = email.strip().lower()

    existing = session.execute(select(User).where(User.email == email)).scalar_one_or_none()
    if existing is not None:
        raise _duplicate_email(email)

    user = User(name=name.strip(), email=email)
    session.add(user)
    try:
        session.flush()
    except IntegrityError as exc:
        session.rollback()
        raise _duplicate_email(email) from exc
    return user


def get_user(user_id: str, session: Session) -> User:
    """Returns the User or raises USER_NOT_FOUND (404)."""
    user = session.get(User, user_id)
    if user is None:
        raise AppError(
            ErrorCode.USER_NOT_FOUND,
            f"User {user_id} does not exist.",
            404,
        )
    return user
