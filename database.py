"""
Document store

Thin wrapper around a pymongo Database. One collection per entity kind
(category, product, user); comments live inside product documents.

Single-document writes go through findOneAndUpdate/findOneAndDelete so each
mutation is atomic on the server and hands back the resulting document.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database

from config import Settings


def connect(settings: Settings) -> MongoClient:
    # Lazy: no socket is opened until the first operation.
    return MongoClient(settings.database_url, tz_aware=True)


def parse_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    if value is None:
        return None
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def serialize(value: Any) -> Any:
    """Make a stored document JSON friendly: ``_id`` becomes ``id``, ObjectIds become strings."""
    if isinstance(value, dict):
        return {("id" if k == "_id" else k): serialize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [serialize(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class DocumentStore:
    def __init__(self, db: Database):
        self.db = db

    @property
    def name(self) -> str:
        return self.db.name

    def ensure_indexes(self) -> None:
        self.db["user"].create_index([("email", ASCENDING)], unique=True)

    def collections(self) -> List[str]:
        return self.db.list_collection_names()

    # ------------------------- Documents -------------------------

    def insert(self, collection: str, data: Union[BaseModel, dict]) -> dict:
        doc = data.model_dump() if isinstance(data, BaseModel) else dict(data)
        result = self.db[collection].insert_one(doc)
        doc["_id"] = result.inserted_id
        return doc

    def get(self, collection: str, oid: ObjectId, projection: Optional[dict] = None) -> Optional[dict]:
        return self.db[collection].find_one({"_id": oid}, projection)

    def find_one(self, collection: str, query: dict, projection: Optional[dict] = None) -> Optional[dict]:
        return self.db[collection].find_one(query, projection)

    def find(self, collection: str, query: Optional[dict] = None, projection: Optional[dict] = None) -> List[dict]:
        return list(self.db[collection].find(query or {}, projection))

    def find_by_ids(self, collection: str, ids: Iterable[ObjectId], projection: Optional[dict] = None) -> Dict[ObjectId, dict]:
        ids = list(set(ids))
        if not ids:
            return {}
        return {doc["_id"]: doc for doc in self.db[collection].find({"_id": {"$in": ids}}, projection)}

    def update_fields(self, collection: str, oid: ObjectId, fields: dict) -> Optional[dict]:
        return self.db[collection].find_one_and_update(
            {"_id": oid}, {"$set": fields}, return_document=ReturnDocument.AFTER
        )

    def delete(self, collection: str, oid: ObjectId) -> Optional[dict]:
        return self.db[collection].find_one_and_delete({"_id": oid})

    # ------------------------- Embedded arrays -------------------------

    def push(self, collection: str, oid: ObjectId, field: str, element: dict) -> Optional[dict]:
        return self.db[collection].find_one_and_update(
            {"_id": oid}, {"$push": {field: element}}, return_document=ReturnDocument.AFTER
        )

    def update_element(self, collection: str, oid: ObjectId, field: str, element_id: ObjectId, fields: dict) -> Optional[dict]:
        update = {f"{field}.$.{key}": value for key, value in fields.items()}
        return self.db[collection].find_one_and_update(
            {"_id": oid, f"{field}._id": element_id},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )

    def pull(self, collection: str, oid: ObjectId, field: str, element_id: ObjectId) -> Optional[dict]:
        return self.db[collection].find_one_and_update(
            {"_id": oid, f"{field}._id": element_id},
            {"$pull": {field: {"_id": element_id}}},
            return_document=ReturnDocument.AFTER,
        )
