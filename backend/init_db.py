"""Database initialization script"""
import asyncio
from moodlog.database import init_db, store


async def main():
    """Create the mood_entries table and its index"""
    print("Initializing database...")
    await init_db()
    await store.close()
    state = "enabled" if store.encryption_enabled else "disabled"
    print(f"Database initialized successfully! (encryption: {state})")


if __name__ == "__main__":
    asyncio.run(main())
