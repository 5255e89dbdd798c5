from __future__ import annotations

import argparse
import csv
import io
import sys
from collections import Counter, defaultdict
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from normalize import TABLES_VERSION, normalize_por, split_por_field
from seed import SURVEY_POR_COLUMNS


def collect(csv_text: str) -> tuple[Counter, dict[str, set[str]]]:
    originals: Counter = Counter()
    merged: dict[str, set[str]] = defaultdict(set)
    for row in csv.DictReader(io.StringIO(csv_text)):
        for column, value in row.items():
            if not column or column.split("\n", 1)[0].strip() not in SURVEY_POR_COLUMNS:
                continue
            for original in split_por_field(value):
                originals[original] += 1
                merged[normalize_por(original)].add(original)
    return originals, merged


def main() -> None:
    parser = argparse.ArgumentParser(description="Show how POR answers collapse under normalization.")
    parser.add_argument("survey", type=Path, help="raw survey CSV export")
    args = parser.parse_args()

    originals, merged = collect(args.survey.read_text(encoding="utf-8-sig"))
    print(f"Synonym tables {TABLES_VERSION}")
    print(f"Original unique PORs: {len(originals)}")
    print(f"After normalization: {len(merged)}")
    print(f"Merged away: {len(originals) - len(merged)}")

    print("\n=== Merged variations ===")
    for canonical, variations in sorted(merged.items(), key=lambda item: (-len(item[1]), item[0])):
        if len(variations) < 2:
            continue
        print(f'"{canonical}" <- {len(variations)} variations')
        for variation in sorted(variations):
            print(f'    - "{variation}" ({originals[variation]})')

    print("\n=== All canonical PORs ===")
    for idx, canonical in enumerate(sorted(merged), start=1):
        print(f"{idx:>3}. {canonical}")


if __name__ == "__main__":
    main()
