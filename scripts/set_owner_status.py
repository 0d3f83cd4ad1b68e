"""Approve or reject an owner account.

Usage:
  python scripts/set_owner_status.py --email alice@example.com --status approved
  python scripts/set_owner_status.py --email bob@example.com --status rejected --reason "Incomplete profile"

This is the approval actor: signup always creates `pending` owners, and nothing
in the public API can change an owner's status.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from owner_platform.auth.crud import OWNER_STATUSES, get_owner_by_email, set_owner_status
from owner_platform.config import load_config
from owner_platform.db import connect, init_db


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--status", choices=list(OWNER_STATUSES), required=True)
    ap.add_argument("--reason", default=None, help="Rejection reason (only stored for --status rejected)")
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        row = get_owner_by_email(conn, args.email)
        if row is None:
            print(f"No owner with email {args.email}")
            sys.exit(1)
        owner = set_owner_status(conn, str(row["owner_id"]), args.status, rejection_reason=args.reason)

    print(f"Owner {owner['email']} ({owner['owner_id']}) is now {owner['status']}")


if __name__ == "__main__":
    main()
