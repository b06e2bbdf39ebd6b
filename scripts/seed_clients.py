#!/usr/bin/env python3
"""Seed an account's scope with sample clients and visits."""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

# Add the parent directory to the path so we can import the app
sys.path.insert(0, str(Path(__file__).parent.parent))

from salonledger import create_app
from salonledger.models import Account
from salonledger.repository import ClientRepository, Scope
from salonledger.routes import get_store
from salonledger.visits import VisitMutator

SAMPLE_CLIENTS = [
    {"name": "Jane Doe", "phone": "555-010-0100", "services": ["Haircut", "Blow Dry"], "amount": 55},
    {"name": "Maria Lopez", "phone": "555-010-0101", "services": ["Hair Coloring"], "amount": 120},
    {"name": "Aisha Khan", "phone": "555-010-0102", "services": ["Manicure", "Pedicure"], "amount": 70},
    {"name": "Emily Chen", "phone": "555-010-0103", "services": ["Facial"], "amount": 85},
]


def seed_clients(email: str):
    """Add sample clients, each with one past visit and a booked next visit."""
    app = create_app()

    with app.app_context():
        account = Account.query.filter_by(email=email.strip().lower()).first()
        if account is None:
            print(f"❌ No account for {email}. Run set_account_password.py first.")
            return

        repository = ClientRepository(get_store(), Scope(account.account_id))
        mutator = VisitMutator(repository)
        now = datetime.now(timezone.utc)

        for offset, sample in enumerate(SAMPLE_CLIENTS):
            client = repository.add_client(sample["name"], sample["phone"])
            mutator.add_visit(client.id, {
                "date": (now - timedelta(days=7 * (offset + 1))).isoformat(),
                "services": sample["services"],
                "amount": sample["amount"],
                "paid": offset % 2 == 0,
                "nextVisit": (now + timedelta(days=offset + 1)).isoformat(),
            })
            print(f"  ✅ #{client.display_id} {client.name}")

        print(f"🎉 Seeded {len(SAMPLE_CLIENTS)} clients for {email}")

if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: seed_clients.py EMAIL")
        sys.exit(1)
    seed_clients(sys.argv[1])
