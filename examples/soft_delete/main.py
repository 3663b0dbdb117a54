#!/usr/bin/env python3
"""
Soft Delete Example for MDB_DATA

Users carry an 'enabled' flag. Deleting a user disables it instead of
removing the document, and every default read hides disabled users. A raw
finder declared on the repository still sees them.

Runs against MongoDB when MONGO_URI and DB_NAME are set, otherwise against
the in-memory store.
"""
import asyncio
import os
from dataclasses import dataclass

from mdb_data import (
    Entity,
    InMemoryDatabase,
    MongoRepository,
    QueryMethod,
    RepositoryDefinition,
    get_database,
    required,
)
from mdb_data.database import close_shared_client


@dataclass
class User(Entity):
    __collection__ = "user"
    __visibility_flag__ = "enabled"

    name: str = required()
    enabled: bool = True


USER_REPOSITORY = RepositoryDefinition(
    User,
    methods={
        # raw: bypasses the enabled filter
        "find_disabled": QueryMethod(query={"enabled": False}, raw=True),
    },
)


async def main():
    """Main example function"""
    if os.getenv("MONGO_URI") and os.getenv("DB_NAME"):
        print(f"📡 Using MongoDB database: {os.getenv('DB_NAME')}")
        db = get_database()
    else:
        print("📦 Using the in-memory store")
        db = InMemoryDatabase("soft_delete_example")

    users = MongoRepository(db, USER_REPOSITORY)

    try:
        # ============================================
        # CREATE
        # ============================================
        joe, fred, bob = await users.save_all(
            [User(name="Joe"), User(name="Fred"), User(name="Bob")]
        )
        print(f"✅ Saved {await users.count()} users\n")

        # ============================================
        # DELETE: flips 'enabled' to False
        # ============================================
        await users.delete_by_id(joe.id)
        print(f"🗑️  Deleted {joe.name}")

        # ============================================
        # READ
        # ============================================
        remaining = await users.find_all()
        print(f"🔍 Visible users: {', '.join(u.name for u in remaining)}")
        print(f"🔍 find_by_id({joe.name}): {await users.find_by_id(joe.id)}")

        disabled = await users.find_disabled()
        print(f"🔍 Disabled users: {', '.join(u.name for u in disabled)}")

        # Clean up the visible users as well
        await users.delete_all()
        print(f"✅ Visible users after delete_all: {await users.count()}")
    finally:
        close_shared_client()


if __name__ == "__main__":
    asyncio.run(main())
