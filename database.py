"""
MongoDB access for the Flashcard Study backend.

The connection is configured from DATABASE_URL / DATABASE_NAME (a .env file
is honoured). When either is missing ``db`` stays None and callers report
the database as unavailable.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from dotenv import load_dotenv
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

load_dotenv()

logger = logging.getLogger(__name__)

SM2_COLLECTION = "user_flashcard_sm2"

_client: Optional[MongoClient] = None
db: Optional[Database] = None

database_url = os.getenv("DATABASE_URL")
database_name = os.getenv("DATABASE_NAME")

if database_url and database_name:
    _client = MongoClient(database_url, tz_aware=True)
    db = _client[database_name]


def ensure_indexes(database: Database) -> None:
    """One scheduling record per (user, flashcard)."""
    database[SM2_COLLECTION].create_index(
        [("user_id", ASCENDING), ("flashcard_id", ASCENDING)],
        unique=True,
        name="user_flashcard_unique",
    )
    database[SM2_COLLECTION].create_index([("user_id", ASCENDING), ("due_date", ASCENDING)])


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = data.copy()

    now = datetime.now(timezone.utc)
    data_dict["created_at"] = now
    data_dict["updated_at"] = now

    result = db[collection_name].insert_one(data_dict)
    logger.info(f"Created {collection_name} document {result.inserted_id}")
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  limit: Optional[int] = None) -> List[Dict[str, Any]]:
    if db is None:
        raise Exception("Database not available. Check DATABASE_URL and DATABASE_NAME environment variables.")

    cursor = db[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
