"""
MongoDB access for the StudyMate backend.

One ``MongoClient`` is shared by the whole process. ``connect()`` is called
by the app lifespan before traffic is accepted; if the store cannot be
reached the service keeps running and every store access fails with
``StoreUnavailableError`` instead of crashing.
"""
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Optional

import structlog
from bson.objectid import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.errors import PyMongoError

from config import get_settings
from errors import StoreUnavailableError, ValidationError

logger = structlog.get_logger()

USERS = "users"
PARTNERS = "partners"
CONNECTIONS = "connections"

# Global client and database handle
_client: Optional[MongoClient] = None
db = None
# Set once the indexes below exist; retried on store access until then
_indexes_ready = False


def connect() -> bool:
    """Create the shared client and check connectivity. Returns True if the store answered a ping."""
    global _client, db, _indexes_ready
    settings = get_settings()
    _indexes_ready = False
    if not settings.database_url:
        logger.warning("database_unavailable", reason="DATABASE_URL not set")
        return False

    try:
        # SRV lookup and URI parsing happen in the constructor
        _client = MongoClient(
            settings.database_url,
            serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        )
    except PyMongoError as e:
        logger.warning("database_unavailable", reason=str(e)[:200])
        _client = None
        db = None
        return False

    db = _client[settings.database_name]
    try:
        _client.admin.command("ping")
        ensure_indexes()
    except PyMongoError as e:
        logger.warning("database_unavailable", reason=str(e)[:200])
        return False

    logger.info("database_connected", database=settings.database_name)
    return True


def use_client(client, database_name: Optional[str] = None) -> None:
    """Install an already constructed client (used by tests and scripts)."""
    global _client, db, _indexes_ready
    _client = client
    db = client[database_name or get_settings().database_name]
    _indexes_ready = False


def close() -> None:
    """Close the shared client; later store access fails with StoreUnavailableError."""
    global _client, db, _indexes_ready
    if _client is not None:
        _client.close()
        logger.info("database_closed")
    _client = None
    db = None
    _indexes_ready = False


def get_db():
    """Return the database handle, creating the required indexes on first successful use."""
    if db is None:
        raise StoreUnavailableError("database is not available", code="store_unavailable")
    if not _indexes_ready:
        ensure_indexes()
    return db


def collection(name: str):
    return get_db()[name]


def ping() -> bool:
    if _client is None:
        return False
    try:
        _client.admin.command("ping")
    except PyMongoError:
        return False
    return True


def ensure_indexes() -> None:
    """Indexes the application relies on for correctness."""
    global _indexes_ready
    if db is None:
        raise StoreUnavailableError("database is not available", code="store_unavailable")
    connections = db[CONNECTIONS]
    connections.create_index(
        [("partnerId", ASCENDING), ("requesterEmail", ASCENDING)],
        unique=True,
        name="partner_requester_unique",
    )
    connections.create_index([("requesterEmail", ASCENDING)], name="requester_email")
    if not _indexes_ready:
        logger.info("database_indexes_ready")
    _indexes_ready = True


@contextmanager
def transaction() -> Iterator[Any]:
    """
    Yield a session bound to a multi-document transaction, or None when
    transactions are disabled. Passing ``session=None`` to pymongo runs the
    operation outside any transaction.
    """
    if not get_settings().use_transactions:
        yield None
        return
    if _client is None:
        raise StoreUnavailableError("database is not available")
    with _client.start_session() as session:
        with session.start_transaction():
            yield session


# Helpers

def parse_object_id(value: Any, label: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if not isinstance(value, str) or not ObjectId.is_valid(value):
        raise ValidationError(f"Invalid {label}", code=f"invalid_{label.replace(' ', '_')}")
    return ObjectId(value)


def to_public(doc: Optional[dict]):
    if not doc:
        return doc
    doc = {**doc}
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    return doc


def create_document(collection_name: str, data, session=None) -> str:
    """Insert a document (dict or pydantic model) and return its id as a string."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    result = collection(collection_name).insert_one(data_dict, session=session)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[Dict[str, Any]] = None,
                  sort: Optional[List] = None, limit: Optional[int] = None) -> List[dict]:
    cursor = collection(collection_name).find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return [to_public(d) for d in cursor]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
