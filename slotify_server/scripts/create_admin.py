#!/usr/bin/env python3
# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Create admin account. Run: python -m slotify_server.scripts.create_admin"""

import asyncio
import getpass
import sys

from sqlalchemy import select

from slotify_server.auth import hash_password
from slotify_server.database import async_session_maker, init_db
from slotify_server.models import Admin


async def main():
    await init_db()
    email = input("Admin email: ").strip().lower()
    password = getpass.getpass("Password: ")
    if not email or not password:
        print("All fields required")
        sys.exit(1)
    if password != getpass.getpass("Confirm password: "):
        print("Passwords do not match")
        sys.exit(1)

    async with async_session_maker() as session:
        result = await session.execute(select(Admin).where(Admin.email == email))
        if result.scalar_one_or_none():
            print("Admin already exists")
            sys.exit(1)
        session.add(Admin(email=email, password_hash=hash_password(password)))
        await session.commit()
        print("Admin created.")


if __name__ == "__main__":
    asyncio.run(main())
