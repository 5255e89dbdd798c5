from __future__ import annotations

import csv
import io
import os
import re
from pathlib import Path
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from audit import IMPORT, EventKind, record_event
from auth import hash_password, normalize_email
from models import PROGRAMS, User
from normalize import normalize_department, normalize_hostel, normalize_pors, split_por_field


REQUIRED_USER_COLUMNS = {
    "email",
    "name",
    "department",
    "year",
    "hostel",
    "pors",
    "isAdmin",
    "password",
}
OPTIONAL_USER_COLUMNS = {"program", "isDeptHead"}
CLEAN_CSV_HEADER = ["email", "name", "department", "year", "hostel", "pors", "isAdmin", "password"]

REQUIRED_SURVEY_COLUMNS = {"Roll number", "First Name", "Last Name", "Department", "Hostel", "Current year of study"}
SURVEY_POR_COLUMNS = (
    "Institute Councils",
    "Independent Bodies/Cells/Fests",
    "Technical Activities",
    "Cultural Activities",
    "Department Councils",
    "Sports + Clubs",
)
STUDENT_EMAIL_DOMAIN = "iitb.ac.in"

BLANK_MARKERS = {"", "na", "n/a", "none", "-"}
_FIRST_NUMBER = re.compile(r"(\d+)")


def _parse_optional(value: str | None) -> str | None:
    value = (value or "").strip()
    return None if value.lower() in BLANK_MARKERS else value


def _parse_int(value: str) -> int | None:
    value = (value or "").strip()
    return int(value) if value else None


def _parse_bool(value: str) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "y"}


def _parse_program(value: str | None) -> str:
    program = (value or "").strip().lower() or PROGRAMS[0]
    if program not in PROGRAMS:
        raise ValueError(f"Unknown program: {value}")
    return program


def validate_csv_columns(columns: list[str]) -> tuple[bool, list[str]]:
    missing = sorted(REQUIRED_USER_COLUMNS - set(columns))
    return len(missing) == 0, missing


def load_users_from_csv(csv_text: str) -> list[dict[str, Any]]:
    """Parse a clean users CSV and normalize department, hostel and PORs."""
    reader = csv.DictReader(io.StringIO(csv_text.strip()))
    valid, missing = validate_csv_columns(reader.fieldnames or [])
    if not valid:
        raise ValueError(f"Missing required columns: {missing}")

    rows: list[dict[str, Any]] = []
    for line_no, row in enumerate(reader, start=2):
        email = normalize_email(row["email"])
        if not email:
            raise ValueError(f"Row {line_no}: email is required")
        year = _parse_int(row["year"]) or 1
        if year < 1:
            raise ValueError(f"Row {line_no}: year must be at least 1")

        parsed = {
            "email": email,
            "name": (row["name"] or "").strip() or email,
            "department": normalize_department(row["department"]) or "",
            "year": year,
            "hostel": normalize_hostel(_parse_optional(row["hostel"])),
            "pors": normalize_pors(split_por_field(row["pors"])),
            "is_admin": _parse_bool(row["isAdmin"]),
            "password": (row["password"] or "").strip(),
        }
        if "program" in row:
            parsed["program"] = _parse_program(row["program"])
        if "isDeptHead" in row:
            parsed["is_dept_head"] = _parse_bool(row["isDeptHead"])
        rows.append(parsed)
    return rows


def _existing_by_email(db: Session, rows: list[dict[str, Any]]) -> dict[str, User]:
    emails = [row["email"] for row in rows]
    return {u.email: u for u in db.scalars(select(User).where(User.email.in_(emails))).all()}


def preview_diff(db: Session, rows: list[dict[str, Any]]) -> dict[str, int]:
    existing = _existing_by_email(db, rows)
    to_update = sum(1 for row in rows if row["email"] in existing)
    return {"insert": len(rows) - to_update, "update": to_update}


def upsert_users(db: Session, rows: list[dict[str, Any]], actor_user_id: str | None = None, source: str = "csv") -> dict[str, int]:
    existing_map = _existing_by_email(db, rows)
    default_password = os.getenv("SMP_DEFAULT_USER_PASSWORD", "")

    inserted = 0
    updated = 0
    for row in rows:
        fields = {key: value for key, value in row.items() if key != "password"}
        existing = existing_map.get(row["email"])
        if existing:
            # Passwords are only set on create.
            for key, value in fields.items():
                setattr(existing, key, value)
            updated += 1
        else:
            password = row.get("password") or default_password
            user = User(password_hash=hash_password(password) if password else None, **fields)
            db.add(user)
            existing_map[row["email"]] = user
            inserted += 1
    db.flush()

    record_event(
        db,
        EventKind.USER_ACTION,
        IMPORT,
        "Users imported",
        actor_user_id,
        source=source,
        inserted=inserted,
        updated=updated,
    )
    return {"inserted": inserted, "updated": updated}


def seed_default_admin(db: Session) -> User:
    admin_email = normalize_email(os.getenv("SMP_ADMIN_EMAIL", "admin@smp.local"))
    admin_pass = os.getenv("SMP_ADMIN_PASSWORD", "Admin123!")
    admin_name = os.getenv("SMP_ADMIN_NAME", "SMP Admin")

    admin = db.scalar(select(User).where(User.email == admin_email))
    if not admin:
        admin = User(
            email=admin_email,
            name=admin_name,
            department="Administration",
            year=4,
            pors=[],
            is_admin=True,
            password_hash=hash_password(admin_pass),
        )
        db.add(admin)
        db.flush()
    return admin


def seed_users_if_empty(db: Session, sample_csv_path: str = "data/users.sample.csv") -> dict[str, int]:
    total = db.scalar(select(func.count()).select_from(User).where(User.is_admin.is_(False)))
    if total and total > 0:
        return {"inserted": 0, "updated": 0}

    path = Path(sample_csv_path)
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(_default_sample_csv(), encoding="utf-8")

    rows = load_users_from_csv(path.read_text(encoding="utf-8"))
    return upsert_users(db, rows, source="seed")


def _por_columns(row: dict[str, Any]) -> list[str]:
    # Survey headers carry the question text after a newline.
    return [key for key in row if key and key.split("\n", 1)[0].strip() in SURVEY_POR_COLUMNS]


def extract_pors(row: dict[str, Any]) -> list[str]:
    raw: list[str] = []
    for column in _por_columns(row):
        raw.extend(split_por_field(row.get(column)))
    return normalize_pors(raw)


def survey_row_to_user(row: dict[str, Any], default_password: str = "") -> dict[str, Any] | None:
    roll_number = (row.get("Roll number") or "").strip()
    if not roll_number:
        return None

    first_name = (row.get("First Name") or "").strip()
    last_name = (row.get("Last Name") or "").strip()
    year_match = _FIRST_NUMBER.search(row.get("Current year of study") or "")

    return {
        "email": f"{roll_number.lower()}@{STUDENT_EMAIL_DOMAIN}",
        "name": f"{first_name} {last_name}".strip() or "Unknown",
        "department": normalize_department(row.get("Department")) or "",
        "year": max(1, int(year_match.group(1))) if year_match else 1,
        "hostel": normalize_hostel(row.get("Hostel")) or "",
        "pors": extract_pors(row),
        "is_admin": False,
        "password": default_password,
    }


def survey_to_clean_rows(csv_text: str, default_password: str = "") -> list[dict[str, Any]]:
    reader = csv.DictReader(io.StringIO(csv_text))
    missing = sorted(REQUIRED_SURVEY_COLUMNS - set(reader.fieldnames or []))
    if missing:
        raise ValueError(f"Missing required survey columns: {missing}")
    users = []
    for row in reader:
        user = survey_row_to_user(row, default_password)
        if user:
            users.append(user)
    return users


def write_clean_csv(users: list[dict[str, Any]], admin: dict[str, Any] | None = None) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(CLEAN_CSV_HEADER)
    if admin:
        writer.writerow(
            [admin["email"], admin["name"], "Administration", 4, "NA", "Admin", "TRUE", admin.get("password", "")]
        )
    for user in users:
        writer.writerow(
            [
                user["email"],
                user["name"],
                user["department"],
                user["year"],
                user["hostel"] or "",
                ",".join(user["pors"]),
                "TRUE" if user.get("is_admin") else "FALSE",
                user.get("password", ""),
            ]
        )
    return buffer.getvalue()


def _default_sample_csv() -> str:
    return """email,name,department,year,hostel,pors,isAdmin,password,program,isDeptHead
22b0001@iitb.ac.in,Aarav Shah,CSE,3,H5,"WnCC,Techfest Coordinator",FALSE,Student123!,ismp,FALSE
22b0002@iitb.ac.in,Diya Menon,Computer Science,3,Hostel-3,"SMP,Mood Indigo",FALSE,Student123!,ismp,FALSE
22b0003@iitb.ac.in,Kabir Rao,EE,2,5,"wncc,E-Cell Core Team",FALSE,Student123!,ismp,FALSE
22b0004@iitb.ac.in,Meera Iyer,Mech,4,h 12,"Aavhan Manager,NSS",FALSE,Student123!,ismp,FALSE
22b0005@iitb.ac.in,Nikhil Verma,Chemical,3,Tansa,"Team Enactus,Sports Council",FALSE,Student123!,damp,FALSE
22b0006@iitb.ac.in,Riya Kulkarni,Chemical Engineering,4,Hostel 9,"Chemeca,SARC",FALSE,Student123!,damp,FALSE
22b0007@iitb.ac.in,Sana Qureshi,Chem,4,H9,"SMP",FALSE,Student123!,damp,TRUE
22b0008@iitb.ac.in,Tanmay Joshi,Aero,2,Hostel 5,"Techfest,Mars Rover Team",FALSE,Student123!,ismp,FALSE
"""
