#!/usr/bin/env python3
# Copyright (C) 2024 Slotify Contributors
# SPDX-License-Identifier: GPL-3.0-or-later

"""Allow-list emails. Run: python -m slotify_server.scripts.add_email alice@example.com [...]"""

import asyncio
import sys

from slotify_server.database import async_session_maker, init_db
from slotify_server.services.catalog import CatalogError, add_email


async def main(emails: list[str]) -> int:
    await init_db()
    failures = 0
    async with async_session_maker() as session:
        for email in emails:
            try:
                entry = await add_email(session, email)
            except CatalogError as e:
                print(f"{email}: {e.message}")
                failures += 1
                continue
            print(f"{entry.email}: added")
    return 1 if failures else 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python -m slotify_server.scripts.add_email EMAIL [EMAIL ...]")
        sys.exit(2)
    sys.exit(asyncio.run(main(sys.argv[1:])))
