#!/usr/bin/env python3
"""
User Management Utility

This script manages the principals that can call the API:
- Create admins and regular users with a fresh API key
- List users with truncated keys
- Rotate a user's API key
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from motor.motor_asyncio import AsyncIOMotorClient
from pymongo.errors import DuplicateKeyError

from library_api.auth import APIKeyManager
from library_api.config import config
from library_api.database import LibraryDatabaseService
from library_api.errors import LibraryError
from library_api.models import UserRole
from utilities.logger import setup_logging

USAGE = """Usage: python manage_users.py [create-admin|create-user|list|rotate] [args]

Commands:
  create-admin <email> [first_name] [last_name]  - Create an admin
  create-user  <email> [first_name] [last_name]  - Create a regular user
  list                                           - List all users
  rotate       <user_id>                         - Issue a new API key for a user

Examples:
  python manage_users.py create-admin librarian@example.com Ada Lovelace
  python manage_users.py list
  python manage_users.py rotate 3"""


async def create_user(db_service: LibraryDatabaseService, role: UserRole, args: list) -> None:
    """Create a principal and print its API key once."""
    if not args:
        print("Error: email required")
        print(USAGE)
        sys.exit(1)

    email, names = args[0], args[1:3]
    first_name = names[0] if len(names) > 0 else None
    last_name = names[1] if len(names) > 1 else None

    user = await db_service.create_user(
        email=email,
        api_key=APIKeyManager.generate_api_key(),
        role=role,
        first_name=first_name,
        last_name=last_name,
    )
    print(f"Created {user.role.value} #{user.id} <{user.email}>")
    print(f"API key: {user.api_key}")
    print("Store this key now, it is only shown in full once.")


async def list_users(db_service: LibraryDatabaseService) -> None:
    """List all users without revealing their keys."""
    users = await db_service.list_users()
    if not users:
        print("No users found in database")
        return

    print(f"Found {len(users)} users:")
    print()
    for user in users:
        name = " ".join(part for part in (user.first_name, user.last_name) if part)
        print(f"{user.id:4d}. {user.email} {name}".rstrip())
        print(f"      Role: {user.role.value}")
        print(f"      Key:  {APIKeyManager.mask(user.api_key)}")


async def rotate_key(db_service: LibraryDatabaseService, args: list) -> None:
    """Issue a new API key, invalidating the old one."""
    if not args or not args[0].isdigit():
        print("Error: numeric user_id required")
        print(USAGE)
        sys.exit(1)

    user = await db_service.rotate_api_key(int(args[0]), APIKeyManager.generate_api_key())
    print(f"Rotated API key for #{user.id} <{user.email}>")
    print(f"API key: {user.api_key}")


async def run_command(db_service: LibraryDatabaseService, command: str, args: list) -> int:
    """Run one command against the database and return the exit status."""
    try:
        await db_service.create_indexes()
        if command == "create-admin":
            await create_user(db_service, UserRole.ADMIN, args)
        elif command == "create-user":
            await create_user(db_service, UserRole.USER, args)
        elif command == "list":
            await list_users(db_service)
        elif command == "rotate":
            await rotate_key(db_service, args)
        else:
            print(f"Unknown command: {command}")
            print("Available commands: create-admin, create-user, list, rotate")
            return 1
    except (LibraryError, DuplicateKeyError) as e:
        print(f"Error: {e}")
        return 1
    return 0


async def main():
    """Main function."""
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    command = sys.argv[1].lower()
    args = sys.argv[2:]

    setup_logging(
        log_level=config.log_level,
        log_format=config.log_format,
        log_file=config.log_file,
        debug=config.debug
    )

    client = AsyncIOMotorClient(config.mongodb_url)
    try:
        db_service = LibraryDatabaseService(client[config.mongodb_database])
        exit_code = await run_command(db_service, command, args)
    finally:
        client.close()
    sys.exit(exit_code)


if __name__ == "__main__":
    asyncio.run(main())
