"""Connect, reconcile a schema and run a few CRUD calls.

Expects DOCSTORE_MONGODB_* variables (at least DOCSTORE_MONGODB_DATABASE).
"""

from __future__ import annotations

import asyncio
import logging

from docstore_commons import ResourceSettings, bootstrap_logging, create_client

SCHEMA = [
    {
        "name": "users",
        "indexes": [
            {"name": "by_email", "key": {"email": 1}, "properties": {"unique": True}},
        ],
    },
    {"name": "audit", "indexes": [{"name": "by_time", "key": {"createdAt": -1}}]},
]


async def main() -> None:
    bootstrap_logging(service="docstore-quickstart", log_format="text", level="DEBUG")
    logger = logging.getLogger("quickstart")

    settings = ResourceSettings.from_env().mongodb
    if settings is None:
        raise SystemExit("DOCSTORE_MONGODB_DATABASE is not set")

    client = await create_client(settings, SCHEMA)
    try:
        user_id = await client.insert_one("users", {"email": "ada@example.com"})
        logger.info("inserted user %s", user_id)

        cursor = await client.find_many("users", {}, limit=10, materialize=False)
        async for user in cursor:
            logger.info("user %s created at %s", user["email"], user["createdAt"])

        await client.delete_one("users", {"_id": user_id})
    finally:
        client.client.close()


if __name__ == "__main__":
    asyncio.run(main())
