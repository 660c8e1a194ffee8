"""CLI tool for admin operations.

Usage:
    python -m tradelog.cli create-user
    python -m tradelog.cli stats <username>
"""

import getpass
import sys

from pydantic import ValidationError
from sqlmodel import Session, select

from tradelog.database import engine, create_db_and_tables
from tradelog.models.user import User
from tradelog.schemas.user import UserCreate
from tradelog.services.auth import create_webhook_token, hash_pin
from tradelog.services.repository import SqlTradeRepository
from tradelog.services.statistics import compute_statistics


def create_user():
    """Create a journal user interactively."""
    create_db_and_tables()

    username = input("Username: ").strip()
    pin = getpass.getpass("PIN (4 digits): ")
    pin_confirm = getpass.getpass("Confirm PIN: ")
    if pin != pin_confirm:
        print("PINs do not match.")
        sys.exit(1)

    try:
        data = UserCreate(username=username, pin=pin)
    except ValidationError as e:
        for err in e.errors():
            print(f"{err['loc'][0]}: {err['msg']}")
        sys.exit(1)

    with Session(engine) as session:
        existing = session.exec(select(User).where(User.username == data.username)).first()
        if existing:
            print(f"User '{data.username}' already exists.")
            sys.exit(1)

        user = User(username=data.username, hashed_pin=hash_pin(data.pin))
        session.add(user)
        session.commit()
        session.refresh(user)

    print(f"\nUser '{user.username}' created successfully.")
    try:
        print(f"Webhook path: /api/webhook/{create_webhook_token(user.id)}")
    except RuntimeError as e:
        print(f"(No webhook token: {e})")


def show_stats(username: str):
    """Print the statistics summary for one user."""
    with Session(engine) as session:
        user = session.exec(select(User).where(User.username == username)).first()
        if not user:
            print(f"User '{username}' not found.")
            sys.exit(1)
        stats = compute_statistics(SqlTradeRepository(session).list_closed(user.id))

    for key, value in stats.to_dict().items():
        if isinstance(value, float):
            value = "inf" if value == float("inf") else f"{value:.2f}"
        print(f"{key:>17}: {value}")


def main():
    if len(sys.argv) < 2:
        print("Usage: python -m tradelog.cli <command>")
        print("Commands: create-user, stats <username>")
        sys.exit(1)

    command = sys.argv[1]
    if command == "create-user":
        create_user()
    elif command == "stats" and len(sys.argv) == 3:
        show_stats(sys.argv[2])
    else:
        print(f"Unknown command: {' '.join(sys.argv[1:])}")
        sys.exit(1)


if __name__ == "__main__":
    main()
