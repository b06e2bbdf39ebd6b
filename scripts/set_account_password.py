"""Utility to create or update a login account for local development."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

from werkzeug.security import generate_password_hash

# Ensure the project root is on sys.path so ``salonledger`` can be imported when the script is executed directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from salonledger import create_app
from salonledger.extensions import db
from salonledger.models import Account


def set_password(email: str, password: str, name: str | None = None) -> None:
    app = create_app()

    with app.app_context():
        email = email.strip().lower()
        account = Account.query.filter_by(email=email).first()
        if account is None:
            account = Account(email=email, name=name or "Salon Owner", password_hash="")
            db.session.add(account)
            print(f"Created new account: {email}")
        elif name:
            account.name = name

        account.password_hash = generate_password_hash(password)
        db.session.commit()

        print(f"Password for '{email}' has been set successfully (uid {account.account_id}).")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Set an account password for local testing.")
    parser.add_argument("email", help="Account email address")
    parser.add_argument("password", help="Plain-text password to hash and store")
    parser.add_argument("--name", default=None, help="Display name for the account")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    set_password(args.email, args.password, args.name)


if __name__ == "__main__":
    main()
