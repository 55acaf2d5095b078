"""
Database Helper Functions

MongoDB helper functions with graceful fallback.
- Primary: real MongoDB via DATABASE_URL + DATABASE_NAME
- Fallback: Mongita (embedded MongoDB-compatible) when no server is configured

A configured but unreachable server is not silently replaced by the embedded
store: the failure is kept in `connection_error` and the app refuses to start.

Mongita understands plain equality and comparison filters, sort, skip and
limit, but no projections, aggregation, `$regex`/`$or` or dotted queries
into arrays. The query helpers below use those features on MongoDB and do
the same work in Python on Mongita.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union
import logging
import re

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from mongita import MongitaClientDisk
from mongita.database import Database as MongitaDatabase
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.errors import PyMongoError

import settings

logger = logging.getLogger(__name__)

_db = None
_client = None
USING_MONGITA = False
connection_error: Optional[str] = None

if settings.DATABASE_URL:
    try:
        _client = MongoClient(settings.DATABASE_URL, serverSelectionTimeoutMS=2000)
        _client.admin.command("ping")  # ensure reachable now
        _db = _client[settings.DATABASE_NAME or "sustainability_hub"]
    except PyMongoError as e:
        _client = None
        _db = None
        connection_error = str(e)
        logger.error("MongoDB at DATABASE_URL is not reachable: %s", e)
else:
    _client = MongitaClientDisk()
    _db = _client[settings.DATABASE_NAME or "sustainability_hub_local"]
    USING_MONGITA = True
    logger.warning("DATABASE_URL not set, using embedded Mongita store")

# Export name expected by application

db = _db


def get_db():
    """FastAPI dependency returning the active database handle"""
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def is_embedded(database) -> bool:
    return isinstance(database, MongitaDatabase)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Stores hand back naive UTC datetimes; make them comparable with aware ones."""
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def get_path(doc: dict, path: str) -> Any:
    value: Any = doc
    for key in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(key)
    return value


def _as_list(value) -> list:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _text_matches(doc: dict, fields: Iterable[str], needle: str) -> bool:
    needle = needle.lower()
    for field in fields:
        if any(isinstance(v, str) and needle in v.lower() for v in _as_list(doc.get(field))):
            return True
    return False


def find_page(
    database,
    collection_name: str,
    query: dict,
    sort: List[Tuple[str, int]],
    skip: int,
    limit: int,
    search: Optional[str] = None,
    search_fields: Sequence[str] = (),
) -> Tuple[List[dict], int]:
    """One page of documents matching `query`, plus the total number of matches.

    `search` is a case-insensitive substring match on any of `search_fields`
    (string or list-of-string fields).
    """
    collection = database[collection_name]
    needle = (search or "").strip()
    if needle and is_embedded(database):
        docs = [d for d in collection.find(query).sort(sort) if _text_matches(d, search_fields, needle)]
        return docs[skip:skip + limit], len(docs)

    if needle:
        pattern = {"$regex": re.escape(needle), "$options": "i"}
        query = {**query, "$or": [{f: pattern} for f in search_fields]}
    docs = list(collection.find(query).sort(sort).skip(skip).limit(limit))
    return docs, collection.count_documents(query)


def count_values(database, collection_name: str, query: dict, field: str, limit: Optional[int] = None) -> List[Tuple[Any, int]]:
    """(value, count) pairs for `field`, most frequent first; array fields count each element."""
    if is_embedded(database):
        counts: Counter = Counter()
        for doc in database[collection_name].find(query):
            counts.update(_as_list(doc.get(field)))
        ranked = sorted(counts.items(), key=lambda kv: (-kv[1], str(kv[0])))
        return ranked[:limit] if limit else ranked

    pipeline: List[dict] = [
        {"$match": query},
        {"$unwind": f"${field}"},
        {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        {"$sort": {"count": -1, "_id": 1}},
    ]
    if limit:
        pipeline.append({"$limit": limit})
    return [(d["_id"], d["count"]) for d in database[collection_name].aggregate(pipeline)]


def sum_values(database, collection_name: str, query: dict, paths: Dict[str, str]) -> Dict[str, float]:
    """Totals of the numeric values at each dotted path, keyed like `paths`."""
    totals: Dict[str, float] = {name: 0 for name in paths}
    if is_embedded(database):
        for doc in database[collection_name].find(query):
            for name, path in paths.items():
                value = get_path(doc, path)
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    totals[name] += value
        return totals

    group: Dict[str, Any] = {"_id": None}
    group.update({name: {"$sum": f"${path}"} for name, path in paths.items()})
    for row in database[collection_name].aggregate([{"$match": query}, {"$group": group}]):
        totals.update({name: row.get(name) or 0 for name in paths})
    return totals


def count_since(database, collection_name: str, field: str, since: datetime) -> int:
    if is_embedded(database):
        since = as_utc(since)
        return sum(
            1 for doc in database[collection_name].find({})
            if isinstance(doc.get(field), datetime) and as_utc(doc[field]) >= since
        )
    return database[collection_name].count_documents({field: {"$gte": since}})


def ensure_indexes(database) -> None:
    """Create the indexes the collections rely on (unique email and slug)."""
    if is_embedded(database):
        return
    database["user"].create_index("email", unique=True)
    database["user"].create_index("role")
    database["user"].create_index("approved")
    database["blogpost"].create_index("slug", unique=True)
    database["blogpost"].create_index([("status", ASCENDING), ("publishedAt", DESCENDING)])
    database["blogpost"].create_index("comments._id")
    database["blogpost"].create_index("tags")
    database["project"].create_index([("type", ASCENDING), ("status", ASCENDING)])
    database["project"].create_index([("created_at", DESCENDING)])
    database["project"].create_index([("isFeatured", ASCENDING), ("isPublic", ASCENDING)])


def to_object_id(id_str: str, not_found: str = "Not found") -> ObjectId:
    """Parse an id from the URL; malformed ids are reported as missing documents."""
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=404, detail=not_found)


def serialize(value: Any) -> Any:
    """Make a stored document JSON friendly: `_id` -> `id`, ObjectIds and dates to strings."""
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            if k == "_id":
                out["id"] = str(v)
            else:
                out[k] = serialize(v)
        return out
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def create_document(database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert a single document with timestamps and return it with its `_id`"""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)

    now = datetime.now(timezone.utc)
    data_dict['created_at'] = now
    data_dict['updated_at'] = now

    result = database[collection_name].insert_one(data_dict)
    data_dict["_id"] = result.inserted_id
    return data_dict


def save_document(database, collection_name: str, doc: dict) -> dict:
    """Rewrite a whole document in place, stamping `updated_at`.

    Embedded arrays (comments, images) are always persisted together with
    their parent; there is no partial update path.
    """
    doc["updated_at"] = datetime.now(timezone.utc)
    result = database[collection_name].replace_one({"_id": doc["_id"]}, doc)
    if result.matched_count == 0:
        raise HTTPException(status_code=404, detail="Document no longer exists")
    return doc
