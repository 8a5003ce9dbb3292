"""
Bulk-import orders from an xlsx file, one order per row.

The whole file is rejected if any row is invalid. Events are not published
because no live clients are attached to this process.

Usage:
    python scripts/import_orders.py orders.xlsx --email sales@example.com
"""
import sys
import os
import argparse

# Add parent directory to path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from sohub.db import SessionLocal
from sohub.errors import ValidationError
from sohub.models.models import User
from sohub.services.lifecycle import OrderEffects, bulk_import
from sohub.services.spreadsheet import read_rows


def import_orders(path: str, email: str) -> int:
    with open(path, "rb") as f:
        rows = read_rows(f.read())
    db = SessionLocal()
    try:
        actor = db.query(User).filter(User.email == email.strip().lower()).first()
        if actor is None:
            print(f"ERROR: no user with email {email}")
            return 1
        try:
            orders = bulk_import(db, rows, actor, OrderEffects())
        except ValidationError as e:
            print(f"ERROR: {e.message}")
            for detail in e.details:
                print(f"  - {detail}")
            return 1
        print(f"Imported {len(orders)} orders ({orders[0].order_code} .. {orders[-1].order_code})")
        return 0
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Import orders from a spreadsheet")
    parser.add_argument("path", help="xlsx file with one order per row")
    parser.add_argument("--email", required=True, help="email of the user the orders are created by")
    args = parser.parse_args(argv)
    return import_orders(args.path, args.email)


if __name__ == "__main__":
    sys.exit(main())
