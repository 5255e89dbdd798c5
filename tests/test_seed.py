import pytest
from sqlalchemy import select

from auth import authenticate_user
from models import AuditLog, User
from seed import (
    _default_sample_csv,
    extract_pors,
    load_users_from_csv,
    preview_diff,
    seed_default_admin,
    seed_users_if_empty,
    survey_row_to_user,
    upsert_users,
    write_clean_csv,
)


CLEAN_CSV = """email,name,department,year,hostel,pors,isAdmin,password
22B0101@IITB.AC.IN,Asha Rao,cse,3,H 5,"wncc,Techfest Core Team",FALSE,pw-one
22b0102@iitb.ac.in,Dev Patel,Mech,2,NA,,FALSE,pw-two
"""


def test_load_users_from_csv_normalizes_fields() -> None:
    rows = load_users_from_csv(CLEAN_CSV)
    assert rows[0]["email"] == "22b0101@iitb.ac.in"
    assert rows[0]["department"] == "Computer Science"
    assert rows[0]["hostel"] == "Hostel 5"
    assert rows[0]["pors"] == ["Techfest", "WnCC"]
    assert rows[1]["hostel"] is None
    assert rows[1]["pors"] == []
    assert "program" not in rows[0]


def test_load_users_from_csv_rejects_missing_columns() -> None:
    with pytest.raises(ValueError, match="Missing required columns"):
        load_users_from_csv("email,name\na@b.c,A\n")


def test_sample_csv_parses_with_optional_columns() -> None:
    rows = load_users_from_csv(_default_sample_csv())
    programs = {row["program"] for row in rows}
    assert programs == {"ismp", "damp"}
    assert any(row["is_dept_head"] for row in rows)


def test_upsert_users_hashes_password_on_create_only(db) -> None:
    rows = load_users_from_csv(CLEAN_CSV)
    assert preview_diff(db, rows) == {"insert": 2, "update": 0}
    assert upsert_users(db, rows) == {"inserted": 2, "updated": 0}

    asha = db.scalar(select(User).where(User.email == "22b0101@iitb.ac.in"))
    original_hash = asha.password_hash
    assert original_hash and original_hash != "pw-one"

    rows[0]["name"] = "Asha R."
    rows[0]["password"] = "changed"
    assert preview_diff(db, rows) == {"insert": 0, "update": 2}
    assert upsert_users(db, rows) == {"inserted": 0, "updated": 2}
    assert asha.name == "Asha R."
    assert asha.password_hash == original_hash
    assert len(db.scalars(select(AuditLog).where(AuditLog.category == "IMPORT")).all()) == 2


def test_authenticate_user_records_failed_attempts(db) -> None:
    upsert_users(db, load_users_from_csv(CLEAN_CSV))

    assert authenticate_user(db, " 22B0101@iitb.ac.in ", "pw-one") is not None
    assert authenticate_user(db, "22b0101@iitb.ac.in", "wrong") is None
    assert authenticate_user(db, "ghost@iitb.ac.in", "pw-one") is None

    failures = db.scalars(select(AuditLog).where(AuditLog.category == "AUTH", AuditLog.kind == "warn")).all()
    assert len(failures) == 2


def test_seed_default_admin_is_idempotent(db, monkeypatch) -> None:
    monkeypatch.setenv("SMP_ADMIN_EMAIL", "Boss@IITB.ac.in")
    first = seed_default_admin(db)
    second = seed_default_admin(db)
    assert first.id == second.id
    assert first.email == "boss@iitb.ac.in"
    assert first.is_admin is True


def test_seed_users_if_empty_writes_sample_once(db, tmp_path) -> None:
    path = tmp_path / "data" / "users.sample.csv"
    result = seed_users_if_empty(db, str(path))
    assert path.exists()
    assert result["inserted"] == 8
    assert seed_users_if_empty(db, str(path)) == {"inserted": 0, "updated": 0}


def survey_row() -> dict:
    return {
        "Roll number": " 22B0999 ",
        "First Name": "Ira",
        "Last Name": "Sen",
        "Department": "EE",
        "Hostel": "Hostel-12",
        "Current year of study": "4th year, DD/ IDDDP/ M.Sc.",
        "Institute Councils\nDo NOT tick any option if you have not been a part of the following councils\n": "Sports Council",
        "Technical Activities\nDo NOT tick any option if you have not been a part of the following activities": "Mars Rover Team; wncc",
        "Why SMP?": "I like helping",
    }


def test_survey_row_to_user() -> None:
    user = survey_row_to_user(survey_row(), default_password="default-pw")
    assert user["email"] == "22b0999@iitb.ac.in"
    assert user["name"] == "Ira Sen"
    assert user["department"] == "Electrical Engineering"
    assert user["hostel"] == "Hostel 12"
    assert user["year"] == 4
    assert user["pors"] == ["Mars Rover Team", "Sports Affairs Council", "WnCC"]
    assert survey_row_to_user({"Roll number": " "}) is None


def test_extract_pors_ignores_non_por_columns() -> None:
    assert "I like helping" not in extract_pors(survey_row())


def test_clean_csv_output_loads_back() -> None:
    user = survey_row_to_user(survey_row(), default_password="default-pw")
    text = write_clean_csv([user], admin={"email": "admin@iitb.ac.in", "name": "Admin", "password": "x"})
    rows = load_users_from_csv(text)
    assert rows[0]["is_admin"] is True
    assert rows[0]["hostel"] is None
    assert rows[1]["pors"] == user["pors"]
