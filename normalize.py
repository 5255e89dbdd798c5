"""Canonical labels for free-text survey answers.

Department, hostel and POR answers arrive as whatever students typed into the
intake form. Everything here is pure and runs once per raw field at import
time; request-time code only ever sees the canonical values.
"""

from __future__ import annotations

import re
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping


TABLES_VERSION = "2024.2"


class Kind(str, Enum):
    DEPARTMENT = "department"
    HOSTEL = "hostel"
    POR = "por"


DEPARTMENT_MAP: Mapping[str, str] = MappingProxyType(
    {
        "cs": "Computer Science",
        "cse": "Computer Science",
        "computer science": "Computer Science",
        "computer science & engineering": "Computer Science & Engineering",
        "ee": "Electrical Engineering",
        "elec": "Electrical Engineering",
        "electrical": "Electrical Engineering",
        "electrical engineering": "Electrical Engineering",
        "me": "Mechanical Engineering",
        "mech": "Mechanical Engineering",
        "mechanical": "Mechanical Engineering",
        "mechanical engineering": "Mechanical Engineering",
        "meta": "Metallurgical Engineering",
        "metallurgical": "Metallurgical Engineering",
        "metallurgical engineering": "Metallurgical Engineering",
        "metallurgical engineering & materials science": "Metallurgical Engineering & Materials Science",
        "chem": "Chemical Engineering",
        "chemical": "Chemical Engineering",
        "chemical engineering": "Chemical Engineering",
        "civil": "Civil Engineering",
        "civil engineering": "Civil Engineering",
        "aero": "Aerospace Engineering",
        "aerospace": "Aerospace Engineering",
        "aerospace engineering": "Aerospace Engineering",
        "ep": "Engineering Physics",
        "engineering physics": "Engineering Physics",
        "engineering physics council": "Engineering Physics",
        "eco": "Economics",
        "economics": "Economics",
        "economics council": "Economics",
        "energy": "Energy Science and Engineering",
        "energy science and engineering": "Energy Science and Engineering",
        "physics": "Physics",
        "mathematics": "Mathematics",
        "mathematics council": "Mathematics",
        "chemistry": "Chemistry",
        "chemistry council": "Chemistry",
        "environmental science and engineering": "Environmental Science and Engineering",
    }
)

HOSTEL_MAP: Mapping[str, str] = MappingProxyType(
    {
        "tansa": "Tansa House",
        "tansa house": "Tansa House",
    }
)

POR_MAP: Mapping[str, str] = MappingProxyType(
    {
        # Core bodies
        "smp": "SMP",
        "s.m.p": "SMP",
        "s.m.p.": "SMP",
        "wncc": "WnCC",
        "w n c c": "WnCC",
        "web and coding club": "WnCC",
        "web and coding club (wncc)": "WnCC",
        "i was a convener of web and coding club (wncc)": "WnCC",
        # Fests
        "techfest": "Techfest",
        "tech fest": "Techfest",
        "techfest coordinator": "Techfest",
        "techfest core team": "Techfest",
        "mood indigo": "Mood Indigo",
        "mood-indigo": "Mood Indigo",
        "mi": "Mood Indigo",
        "mood indigo coordinator": "Mood Indigo",
        "mood indigo core team": "Mood Indigo",
        # Councils
        "student council": "Student Council",
        "sports council": "Sports Affairs Council",
        "cultural council": "Cultural Affairs Council",
        "tech council": "Technical Affairs Council",
        "technical council": "Technical Affairs Council",
        "academic council": "Academic Affairs Council",
        "hostel council": "Hostel Affairs Council",
        "hostel affairs council": "Hostel Affairs Council",
        "department council": "Department Council",
        # Sports
        "institute sports": "Institute Sports",
        "nso": "NSO",
        "nso : cricket": "Cricket",
        "sports head": "Sports Affairs Council",
        # Typos and variants
        "calistanics": "Calisthenics",
        "calisthenics club": "Calisthenics",
        "eeri": "EERI",
        "eeri iitb": "EERI",
        "frisbee": "Ultimate Frisbee",
        "frisbee (the night crawlers)": "Ultimate Frisbee",
        # Inter IIT
        "56th inter iit sports meet coordinator": "Inter IIT Sports",
        "coordinator in aavhan and interiit sports meet 2023": "Aavhan",
        "inter iit squash team captain": "Inter IIT Sports",
        "inter iit in music": "Inter IIT Cultural",
        "interiit tech meet 13.0 core team member": "Inter IIT Tech",
        # Teams
        "aavhan": "Aavhan",
        "aavhan coordinator": "Aavhan",
        "aavhan core team": "Aavhan",
        "aavhan manager": "Aavhan",
        "aavhan sports head": "Aavhan",
        "e-cell": "E-Cell",
        "e-cell coordinator": "E-Cell",
        "e-cell core team": "E-Cell",
        "enactus": "Enactus",
        "enactus head": "Enactus",
        "team enactus": "Enactus",
        "sarc": "SARC",
        "sarc coordinator": "SARC",
        "sarc core team": "SARC",
        "saathi": "Saathi",
        "saathi overall coordinator": "Saathi",
        "abhyuday": "Abhyuday",
        "abhyuday coordinator": "Abhyuday",
        "abhuyday core team": "Abhyuday",
        "team shunya": "Team Shunya",
        "team zero waste": "Sustainability Cell",
        # Technical teams
        "mars rover team": "Mars Rover Team",
        "hyperloop iitb": "Hyperloop",
        "iitb rocket team": "Rocket Team",
        "iitb-racing": "Racing Team",
        "student satellite team": "Student Satellite",
        "auv iitb": "AUV",
        "spart": "SPART",
        "spart (solar powered airship research team)": "SPART",
        # Research and academics
        "casper research group": "Research",
        "research": "Research",
        "volunteer at krittika": "Krittika",
        "hult prize": "Hult Prize",
        "hult prize  (logistics head)": "Hult Prize",
        "nss": "NSS",
        "ncc": "NCC",
        "soc": "SoC",
        "sos": "SoS",
        "summer of science mentor": "SoS Mentor",
        "enb buzz mentor": "EnB Mentor",
        "wids mentorship": "WiDS",
        "gra overall coordinator": "GRA",
        "group for rural activities": "GRA",
        # Department and hostel councils
        "environmental science & engineering council": "Environmental Engineering Council",
        "environmental science and engineering department council": "Environmental Engineering Council",
        "cheme tl con": "Chemical Engineering Council",
        "chemetl and chemistry club": "Chemistry Council",
        "chemeca": "Chemical Engineering Council",
        "cultural secretary of hostel-5 in my second year": "Hostel Affairs Council",
        "hostel 5 council": "Hostel Affairs Council",
        # Teaching assistantships
        "been a teaching assistant of ent courses": "Teaching Assistant",
        "i have completed the following taships: ma105": "Teaching Assistant",
        "was a ta for the course cs101 in my 2nd year": "Teaching Assistant",
        "elit ta": "Teaching Assistant",
        "cs108": "Teaching Assistant",
        "cs215": "Teaching Assistant",
        "cs236": "Teaching Assistant",
        # Everything else
        "took part in a few styleup events in my first year": "Cultural Activities",
        "tca(tamil cultural association)": "Cultural Affairs Council",
        "i was in mrt in the first year but not ticking since it wasn't for long": "Mars Rover Team",
    }
)

_HOSTEL_NUMBER = re.compile(r"^\d+$")
_HOSTEL_PATTERN = re.compile(r"h(?:ostel)?[\s-]*(\d+)", re.IGNORECASE)
_ROLE_SUFFIX = re.compile(r"^(.+?)\s+(overall coordinator|coordinator|core team|manager|head)$", re.IGNORECASE)
_TEAM_PREFIX = re.compile(r"^team\s+(.+)$", re.IGNORECASE)
_WHITESPACE = re.compile(r"\s+")
_POR_SEPARATORS = re.compile(r"[,;]")


def _clean(raw: str | None) -> str | None:
    if raw is None:
        return None
    cleaned = str(raw).strip()
    return cleaned or None


def _title_words(text: str) -> str:
    return " ".join(word[:1].upper() + word[1:] for word in text.split(" "))


def normalize_department(raw: str | None) -> str | None:
    cleaned = _clean(raw)
    if cleaned is None:
        return None
    return DEPARTMENT_MAP.get(cleaned.lower(), cleaned)


def normalize_hostel(raw: str | None) -> str | None:
    cleaned = _clean(raw)
    if cleaned is None:
        return None
    mapped = HOSTEL_MAP.get(cleaned.lower())
    if mapped:
        return mapped
    if _HOSTEL_NUMBER.match(cleaned):
        return f"Hostel {int(cleaned)}"
    match = _HOSTEL_PATTERN.search(cleaned)
    if match:
        return f"Hostel {int(match.group(1))}"
    return cleaned


def _por_step(cleaned: str) -> str:
    lowered = cleaned.lower()
    if lowered in POR_MAP:
        return POR_MAP[lowered]

    collapsed = _WHITESPACE.sub(" ", cleaned)
    if collapsed.lower() in POR_MAP:
        return POR_MAP[collapsed.lower()]

    role = _ROLE_SUFFIX.match(collapsed)
    if role:
        base = role.group(1).strip()
        return POR_MAP.get(base.lower(), _title_words(base))

    if "council" in lowered:
        return collapsed

    team = _TEAM_PREFIX.match(collapsed)
    if team:
        name = team.group(1).strip()
        return POR_MAP.get(name.lower(), name)

    return cleaned


def normalize_por(raw: str | None) -> str | None:
    cleaned = _clean(raw)
    if cleaned is None:
        return None
    # Stacked suffixes and prefixes ("Team X Core Team") need more than one pass.
    for _ in range(8):
        step = _por_step(cleaned)
        if step == cleaned:
            break
        cleaned = step
    return cleaned


_NORMALIZERS = {
    Kind.DEPARTMENT: normalize_department,
    Kind.HOSTEL: normalize_hostel,
    Kind.POR: normalize_por,
}


def normalize(kind: Kind | str, raw_text: str | None) -> str | None:
    """Map one raw answer to its canonical label.

    Unknown values are kept (trimmed) rather than dropped; blank input gives None.
    """
    return _NORMALIZERS[Kind(kind)](raw_text)


def split_por_field(text: str | None) -> list[str]:
    if not text:
        return []
    return [part.strip() for part in _POR_SEPARATORS.split(text) if part.strip()]


def normalize_pors(values: Iterable[str | None]) -> list[str]:
    canonical = {normalize_por(value) for value in values}
    canonical.discard(None)
    return sorted(canonical)


def synonym_tables() -> dict[Kind, Mapping[str, str]]:
    return {Kind.DEPARTMENT: DEPARTMENT_MAP, Kind.HOSTEL: HOSTEL_MAP, Kind.POR: POR_MAP}
