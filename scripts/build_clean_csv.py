from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from seed import survey_to_clean_rows, write_clean_csv


def main() -> None:
    load_dotenv()
    parser = argparse.ArgumentParser(description="Convert the raw intake survey export into a clean users CSV.")
    parser.add_argument("survey", type=Path, help="raw survey CSV export")
    parser.add_argument("output", type=Path, nargs="?", default=Path("users-clean.csv"))
    args = parser.parse_args()

    users = survey_to_clean_rows(
        args.survey.read_text(encoding="utf-8-sig"),
        default_password=os.getenv("SMP_DEFAULT_USER_PASSWORD", ""),
    )
    admin = None
    if os.getenv("SMP_ADMIN_EMAIL"):
        admin = {
            "email": os.environ["SMP_ADMIN_EMAIL"].strip().lower(),
            "name": os.getenv("SMP_ADMIN_NAME", "SMP Admin"),
            "password": os.getenv("SMP_ADMIN_PASSWORD", ""),
        }

    args.output.write_text(write_clean_csv(users, admin), encoding="utf-8")
    print(f"Wrote {len(users)} users to {args.output}")
    if admin:
        print(f"Admin row: {admin['email']}")


if __name__ == "__main__":
    main()
