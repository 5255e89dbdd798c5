from __future__ import annotations

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from db import db_session, init_schema
from seed import load_users_from_csv, preview_diff, seed_default_admin, upsert_users


def main() -> None:
    parser = argparse.ArgumentParser(description="Upsert users from a clean users CSV.")
    parser.add_argument("csv_path", type=Path)
    parser.add_argument("--dry-run", action="store_true", help="only show what would change")
    args = parser.parse_args()

    rows = load_users_from_csv(args.csv_path.read_text(encoding="utf-8-sig"))
    init_schema()
    with db_session() as db:
        diff = preview_diff(db, rows)
        print(f"{len(rows)} rows: {diff['insert']} new, {diff['update']} existing")
        if args.dry_run:
            return
        seed_default_admin(db)
        result = upsert_users(db, rows, source=args.csv_path.name)
    print(f"Inserted {result['inserted']}, updated {result['updated']}")


if __name__ == "__main__":
    main()
