#!/usr/bin/env python3
"""
Create a staff account for the Immigration Back Office API.

Usage:
    python scripts/create_admin.py --email admin@example.com --name "Admin" --password "s3cret-pass"
    python scripts/create_admin.py --email agent@example.com --name "Agent" --password "..." --role agent
"""

import asyncio
import argparse
import sys
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.core.exceptions import InvalidParameterException
from app.database import AsyncSessionLocal, init_db, close_db
from app.models.user import User, UserRole
from app.services.user_service import UserService


async def create_account(email: str, name: str, password: str, role: UserRole) -> User:
    async with AsyncSessionLocal() as session:
        return await UserService.create_user(session, email=email, name=name, password=password, role=role)


async def main():
    parser = argparse.ArgumentParser(description="Create a staff account for the back office")
    parser.add_argument("--email", required=True, help="Login email (required)")
    parser.add_argument("--name", required=True, help="Display name (required)")
    parser.add_argument("--password", required=True, help="Initial password, at least 8 characters")
    parser.add_argument(
        "--role",
        choices=[r.value for r in UserRole],
        default=UserRole.ADMIN.value,
        help="Account role (default: admin)"
    )
    args = parser.parse_args()

    await init_db()
    try:
        user = await create_account(args.email, args.name, args.password, UserRole(args.role))
    except InvalidParameterException as e:
        print(f"Error creating account: {e.detail}", file=sys.stderr)
        sys.exit(1)
    finally:
        await close_db()

    print("\n" + "=" * 70)
    print("ACCOUNT CREATED SUCCESSFULLY")
    print("=" * 70)
    print(f"ID: {user.id}")
    print(f"Email: {user.email}")
    print(f"Name: {user.name}")
    print(f"Role: {user.role.value}")
    print("=" * 70 + "\n")


if __name__ == "__main__":
    asyncio.run(main())
