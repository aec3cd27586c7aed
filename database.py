"""
MongoDB access layer.

Holds the process-wide database handle, the connection manager with
bounded retry, and the small document helpers every service uses.
Collection names are the lowercase schema names (User -> "user").
"""

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import settings
from errors import DatabaseError, ValidationError

logger = logging.getLogger(__name__)

# Set by DatabaseConnection.connect() or use_database()
db: Optional[Database] = None


def utcnow() -> datetime:
    """Naive UTC timestamp, the form pymongo hands back by default."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DatabaseConnection:
    """
    Connection manager with a fixed-delay retry loop and a health check.
    """

    def __init__(self, url: Optional[str] = None, name: Optional[str] = None,
                 max_retries: Optional[int] = None, retry_delay: Optional[float] = None):
        self.url = url or settings.database.url
        self.name = name or settings.database.name
        self.max_retries = max_retries if max_retries is not None else settings.database.max_retries
        self.retry_delay = retry_delay if retry_delay is not None else settings.database.retry_delay
        self.retry_count = 0
        self.is_connected = False
        self.client: Optional[MongoClient] = None
        self.db: Optional[Database] = None

    def _open(self) -> MongoClient:
        return MongoClient(
            self.url,
            maxPoolSize=settings.database.max_pool_size,
            serverSelectionTimeoutMS=settings.database.server_selection_timeout_ms,
            retryWrites=True,
            w="majority",
        )

    def connect(self) -> Database:
        """
        Connect and ping, retrying up to max_retries attempts in total.

        Raises:
            DatabaseError: when every attempt failed
        """
        global db
        last_error: Optional[Exception] = None
        if self.client is not None:
            self.disconnect()

        while self.retry_count < self.max_retries:
            self.retry_count += 1
            client: Optional[MongoClient] = None
            try:
                client = self._open()
                client.admin.command("ping")
            except PyMongoError as e:
                last_error = e
                if client is not None:
                    client.close()
                logger.error(f"MongoDB connection error: {e}")
                if self.retry_count < self.max_retries:
                    logger.warning(
                        f"Retrying database connection ({self.retry_count}/{self.max_retries}) "
                        f"in {self.retry_delay}s..."
                    )
                    time.sleep(self.retry_delay)
                continue

            self.client = client
            self.db = client[self.name]
            self.is_connected = True
            self.retry_count = 0
            db = self.db
            ensure_indexes(self.db)
            logger.info(f"MongoDB connected - database: {self.name}")
            return self.db

        self.retry_count = 0
        logger.error("Max retry attempts reached. Could not connect to database.")
        raise DatabaseError(f"Could not connect to database: {last_error}")

    def disconnect(self) -> None:
        global db
        if self.client is not None:
            self.client.close()
            logger.info("MongoDB connection closed")
        if db is self.db:
            db = None
        self.client = None
        self.db = None
        self.is_connected = False

    def status(self) -> Dict[str, Any]:
        host, port = None, None
        if self.client is not None:
            try:
                address = self.client.address
            except PyMongoError:
                address = None
            if address:
                host, port = address
        return {
            "is_connected": self.is_connected,
            "host": host,
            "port": port,
            "name": self.db.name if self.db is not None else None,
        }

    def health_check(self) -> Dict[str, Any]:
        """Ping the database. Never raises."""
        target = self.db if self.db is not None else db
        try:
            if target is None:
                raise DatabaseError("Database not connected")
            target.command("ping")
            return {
                "status": "healthy",
                "connection": self.status(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
                "connection": self.status(),
                "timestamp": datetime.now(timezone.utc).isoformat(),
            }


connection = DatabaseConnection()


def use_database(database: Database) -> Database:
    """Install an already-open database (tests and scripts)."""
    global db
    db = database
    connection.db = database
    connection.is_connected = True
    ensure_indexes(database)
    return database


def ensure_indexes(database: Database) -> None:
    database["user"].create_index("email", unique=True)
    database["product"].create_index([("category", ASCENDING)])
    database["product"].create_index([("created_at", DESCENDING)])
    database["category"].create_index("slug", unique=True)
    database["order"].create_index("order_number", unique=True)
    database["order"].create_index([("created_at", DESCENDING)])
    database["sample_request"].create_index([("customer_info.email", ASCENDING), ("created_at", DESCENDING)])
    database["sample_request"].create_index("duplicate_check_hash")
    database["contact_message"].create_index([("customer_info.email", ASCENDING), ("created_at", DESCENDING)])
    database["content"].create_index([("section", ASCENDING), ("version", DESCENDING)])


def get_collection(name: str):
    if db is None:
        raise DatabaseError("Database not connected")
    return db[name]


def create_document(collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document with timestamps and return its id as a string."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    doc.setdefault("created_at", now)
    doc["updated_at"] = now
    result = get_collection(collection_name).insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None,
                  limit: Optional[int] = None) -> List[dict]:
    cursor = get_collection(collection_name).find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(value: Any) -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    raise ValidationError(f"Invalid id: {value}", code="INVALID_ID")


def serialize(value: Any) -> Any:
    """Make a Mongo document JSON friendly: ObjectId -> str, _id -> id."""
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            out["id" if k == "_id" else k] = serialize(v)
        return out
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


def paginate(collection_name: str, query: dict, page: int = 1, limit: int = 20,
             sort: Optional[List[Tuple[str, int]]] = None) -> Tuple[List[dict], Dict[str, Any]]:
    page = max(page, 1)
    limit = max(limit, 1)
    coll = get_collection(collection_name)
    total = coll.count_documents(query)
    cursor = coll.find(query)
    if sort:
        cursor = cursor.sort(sort)
    docs = list(cursor.skip((page - 1) * limit).limit(limit))
    total_pages = math.ceil(total / limit) if total else 0
    return docs, {
        "current_page": page,
        "total_pages": total_pages,
        "total": total,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }


def sort_spec(sort_by: str, sort_order: str) -> List[Tuple[str, int]]:
    return [(sort_by, DESCENDING if sort_order == "desc" else ASCENDING)]


def generate_number(prefix: str, collection_name: str) -> str:
    """prefix + last 6 digits of epoch ms + 4-digit running count."""
    timestamp = str(int(time.time() * 1000))[-6:]
    count = get_collection(collection_name).count_documents({})
    return f"{prefix}{timestamp}{count + 1:04d}"
