"""
Delete every payment session from the local store.
Use between manual test runs; there is no undo.
"""
import asyncio
import sys

from shipsync.database import get_db_context, init_db
from shipsync.services.session_store import SessionStore


async def reset_sessions(confirm: bool) -> int:
    await init_db()
    async with get_db_context() as db:
        store = SessionStore(db)
        sessions = await store.list_sessions(limit=100)
        print(f"Found {len(sessions)} payment sessions (listing capped at 100)")

        if not confirm:
            print("Dry run. Re-run with --yes to delete them.")
            return 0

        deleted = await store.reset_all()
        print(f"SUCCESS: {deleted} payment sessions deleted")
        return deleted


if __name__ == "__main__":
    asyncio.run(reset_sessions(confirm="--yes" in sys.argv[1:]))
