from __future__ import annotations

import uuid
from typing import Optional

import bcrypt
from sqlalchemy import select
from sqlalchemy.orm import Session

from audit import AUTH, EventKind, record_event
from models import User


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    address = normalize_email(email)
    user = db.scalar(select(User).where(User.email == address))
    if not user or not user.password_hash or not verify_password(password or "", user.password_hash):
        record_event(db, EventKind.WARN, AUTH, "Failed login attempt", user.id if user else None, email=address)
        return None
    record_event(db, EventKind.USER_ACTION, AUTH, "Login", user.id, email=address)
    return user


def get_user_by_id(db: Session, user_id: str | uuid.UUID) -> Optional[User]:
    try:
        return db.get(User, uuid.UUID(str(user_id)))
    except ValueError:
        return None
