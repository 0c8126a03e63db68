#!/usr/bin/env python3
"""
Load email to merchant ID mappings from a CSV file.

CSV columns: email, merchant_ids (IDs separated by ';', ',' or ':' inside the cell)

    python scripts/seed_email_mappings.py mappings.csv
    python scripts/seed_email_mappings.py mappings.csv --dry-run
"""
import argparse
import csv
import re
import sys

from merchantdesk.models.base import SessionLocal, init_db
from merchantdesk.services import email_mapping_service


def read_rows(path: str) -> list[tuple[str, list[str]]]:
    rows = []
    with open(path, newline="") as f:
        for row in csv.DictReader(f):
            email = (row.get("email") or "").strip()
            ids = [p for p in re.split(r"[;,:\s]+", row.get("merchant_ids") or "") if p]
            if email:
                rows.append((email, ids))
    return rows


def main():
    parser = argparse.ArgumentParser(description="Seed email to merchant ID mappings")
    parser.add_argument("csv_path", help="CSV with email and merchant_ids columns")
    parser.add_argument("--dry-run", action="store_true", help="Validate without writing")
    args = parser.parse_args()

    rows = read_rows(args.csv_path)
    print(f"Read {len(rows)} mappings from {args.csv_path}")

    if args.dry_run:
        for email, ids in rows:
            valid = email_mapping_service.clean_merchant_ids(ids)
            print(f"  {email}: {', '.join(valid) or '(no valid IDs)'}")
        return

    init_db()
    db = SessionLocal()
    errors = 0
    try:
        for email, ids in rows:
            try:
                mapping = email_mapping_service.upsert_mapping(db, email, ids)
                print(f"  ✓ {mapping.email}: {', '.join(mapping.merchant_ids)}")
            except email_mapping_service.MappingValidationError as e:
                print(f"  ✗ {email}: {e}")
                errors += 1
    finally:
        db.close()

    sys.exit(1 if errors else 0)


if __name__ == "__main__":
    main()
