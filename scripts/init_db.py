"""
Create the payment_sessions table if it does not exist.
"""
import asyncio

from shipsync.config import settings
from shipsync.database import init_db, close_db


async def main():
    print(f"Initialising session store at {settings.database_url}")
    await init_db()
    await close_db()
    print("SUCCESS: Tables ready")


if __name__ == "__main__":
    asyncio.run(main())
