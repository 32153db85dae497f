"""MongoDB connection and collection access.

Each collection is schemaless; records are plain dicts. The ``Store`` wraps the
handful of single-operation reads and writes the routes need and reports
outcomes as booleans and counts rather than raising.
"""

from typing import Any, Dict, List, Optional

from fastapi import Depends, Request
from loguru import logger
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from config import Settings

MOVIES = "movies"
TICKETS = "tickets"
THEATRE = "theatre"
USERS = "users"


async def create_client(settings: Settings) -> AsyncMongoClient:
    client = AsyncMongoClient(settings.mongo_url)
    await client.admin.command("ping")
    logger.info(f"Mongodb connected, using database {settings.mongo_db!r}")
    return client


def get_db(request: Request) -> AsyncDatabase:
    """Dependency returning the database opened at startup."""
    return request.app.state.db


def str_id(doc):
    if not doc:
        return doc
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


class Store:
    def __init__(self, db: AsyncDatabase):
        self.db = db

    async def find(self, collection: str, query: Dict[str, Any]) -> List[Dict[str, Any]]:
        docs = await self.db[collection].find(query).to_list(length=None)
        return [str_id(d) for d in docs]

    async def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self.db[collection].find_one(query)

    async def insert_one(self, collection: str, data: Dict[str, Any]) -> bool:
        result = await self.db[collection].insert_one(data)
        logger.info(f"{collection}: insert acknowledged={result.acknowledged}")
        return result.acknowledged

    async def insert_many(self, collection: str, docs: List[Dict[str, Any]]) -> bool:
        result = await self.db[collection].insert_many(docs)
        logger.info(f"{collection}: bulk insert of {len(docs)} acknowledged={result.acknowledged}")
        return result.acknowledged

    async def update_one(self, collection: str, query: Dict[str, Any], data: Dict[str, Any]) -> int:
        result = await self.db[collection].update_one(query, {"$set": data})
        logger.info(f"{collection}: update {query} modified={result.modified_count}")
        return result.modified_count

    async def delete_one(self, collection: str, query: Dict[str, Any]) -> int:
        result = await self.db[collection].delete_one(query)
        logger.info(f"{collection}: delete {query} deleted={result.deleted_count}")
        return result.deleted_count


def get_store(db: AsyncDatabase = Depends(get_db)) -> Store:
    return Store(db)
