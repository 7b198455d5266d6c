"""CLI tool for Lendtrack."""

from __future__ import annotations

import argparse
import asyncio
import sys

from sqlalchemy import select

from lendtrack.database import AsyncSessionLocal, init_db, unit_of_work
from lendtrack.models import User, UserRole
from lendtrack.services.users import get_user_by_email, list_users
from lendtrack.utils.auth import create_access_token


async def bootstrap_user(email: str, name: str, role: UserRole) -> None:
    """Create or reactivate a user outside of the audited admin flow.

    Meant for first-time setup, before any administrator exists to act as
    the audit actor.
    """
    await init_db()
    async with AsyncSessionLocal() as session:
        user = await get_user_by_email(session, email)
        async with unit_of_work(session):
            if user:
                # Only ever promotes; demotion goes through the audited service.
                user.is_active = True
                if role is UserRole.ADMINISTRATOR:
                    user.role = role.value
                action = "Updated"
            else:
                user = User(
                    name=name.strip(),
                    email=User.normalize_email(email),
                    role=role.value,
                    is_active=True,
                )
                session.add(user)
                action = "Created"
        print(f"{action} {user.role} {user.email} ({user.id})")


async def print_users(include_inactive: bool) -> None:
    """List users."""
    await init_db()
    async with AsyncSessionLocal() as session:
        users = await list_users(session, include_inactive=include_inactive)
        for user in users:
            print(
                f"ID: {user.id}, Name: {user.name}, Email: {user.email}, "
                f"Role: {user.role}, Active: {user.is_active}"
            )


async def issue_token(email: str) -> None:
    """Print a session token for an active user."""
    await init_db()
    async with AsyncSessionLocal() as session:
        result = await session.execute(
            select(User).where(
                User.email == User.normalize_email(email), User.is_active.is_(True)
            )
        )
        user = result.scalar_one_or_none()
        if user is None:
            print(f"Active user {email} not found.", file=sys.stderr)
            sys.exit(1)
        print(create_access_token(user.id))


def main() -> None:
    parser = argparse.ArgumentParser(description="Lendtrack CLI tool.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    user_parser = subparsers.add_parser("user", help="Manage users")
    user_subparsers = user_parser.add_subparsers(dest="user_command", required=True)

    create_parser = user_subparsers.add_parser(
        "create", help="Create or reactivate a user (unaudited bootstrap)"
    )
    create_parser.add_argument("--email", required=True, help="User email")
    create_parser.add_argument("--name", required=True, help="Display name")
    create_parser.add_argument(
        "--admin", action="store_true", help="Grant the administrator role"
    )

    list_parser = user_subparsers.add_parser("list", help="List users")
    list_parser.add_argument(
        "--all", action="store_true", help="Include deactivated users"
    )

    token_parser = subparsers.add_parser("token", help="Issue a session token")
    token_parser.add_argument("--email", required=True, help="User email")

    args = parser.parse_args()

    if args.command == "user":
        if args.user_command == "create":
            role = UserRole.ADMINISTRATOR if args.admin else UserRole.STANDARD
            asyncio.run(bootstrap_user(args.email, args.name, role))
        elif args.user_command == "list":
            asyncio.run(print_users(args.all))
    elif args.command == "token":
        asyncio.run(issue_token(args.email))


if __name__ == "__main__":
    main()
