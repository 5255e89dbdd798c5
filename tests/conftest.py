from __future__ import annotations

from typing import Any, Callable, Iterator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from models import Base, User
from reviews import settings_cache


@pytest.fixture()
def engine():
    engine = create_engine("sqlite+pysqlite:///:memory:", poolclass=StaticPool)

    # pysqlite needs explicit BEGIN for SAVEPOINT support.
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn) -> None:
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db(engine) -> Iterator[Session]:
    session = Session(engine, expire_on_commit=False)
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture(autouse=True)
def fresh_settings_cache() -> Iterator[None]:
    settings_cache.invalidate()
    yield
    settings_cache.invalidate()


@pytest.fixture()
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(name: str | None = None, **fields: Any) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            email=fields.pop("email", f"student{n}@iitb.ac.in"),
            name=name or f"Student {n}",
            department=fields.pop("department", "Computer Science"),
            year=fields.pop("year", 3),
            hostel=fields.pop("hostel", "Hostel 5"),
            pors=fields.pop("pors", []),
            program=fields.pop("program", "ismp"),
            **fields,
        )
        db.add(user)
        db.flush()
        return user

    return _make


def ratings(value: int = 5) -> dict[str, int]:
    return {
        "approachability": value,
        "academic_inclination": value,
        "work_ethics": value,
        "maturity": value,
        "open_mindedness": value,
        "academic_ethics": value,
    }


def texts(prefix: str = "ok") -> dict[str, str]:
    return {
        "substance_abuse": f"{prefix}: none observed",
        "ismp_mentor": f"{prefix}: would be a good mentor",
        "other_comments": f"{prefix}: friendly",
    }
