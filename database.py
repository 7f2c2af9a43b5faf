"""
MongoDB connection context and document helpers.

A ``Database`` is constructed explicitly and handed to whoever needs it;
the pymongo client is created on first use and shared afterwards.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database as MongoDatabase

from config import Settings

logger = logging.getLogger(__name__)


class ConfigurationError(Exception):
    pass


def to_str_id(doc: Any) -> Any:
    """Return ``doc`` with every ObjectId (nested ones included) as a string."""
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, dict):
        return {k: to_str_id(v) for k, v in doc.items()}
    if isinstance(doc, list):
        return [to_str_id(v) for v in doc]
    return doc


def to_object_id(value: Union[str, ObjectId]) -> ObjectId:
    # bson raises InvalidId for malformed strings
    if isinstance(value, ObjectId):
        return value
    return ObjectId(value)


class Database:
    def __init__(self, settings: Settings, client: Optional[MongoClient] = None):
        self.settings = settings
        self._client = client
        self._owns_client = client is None
        self._db: Optional[MongoDatabase] = None

    def connect(self) -> MongoDatabase:
        """Return the database handle, creating the client on first call."""
        if self._db is not None:
            return self._db

        if self._client is None:
            if not self.settings.database_url:
                raise ConfigurationError("Database URL not provided")
            self._client = MongoClient(self.settings.database_url)

        self._db = self._client[self.settings.database_name]
        logger.info("Using database %s", self.settings.database_name)
        return self._db

    def close(self) -> None:
        """Close the client this context created; an injected client stays usable."""
        if self._owns_client and self._client is not None:
            self._client.close()
            self._client = None
        self._db = None

    def collection(self, name: str) -> Collection:
        return self.connect()[name]

    @property
    def accounts(self) -> Collection:
        return self.collection(self.settings.accounts_collection)

    @property
    def customers(self) -> Collection:
        return self.collection(self.settings.customers_collection)

    @property
    def transactions(self) -> Collection:
        return self.collection(self.settings.transactions_collection)

    def collection_names(self) -> List[str]:
        return self.connect().list_collection_names()

    def create_document(self, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
        """Insert ``data`` as-is and return the new ``_id`` as a string."""
        if isinstance(data, BaseModel):
            data_dict = data.model_dump(exclude_none=True)
        else:
            data_dict = dict(data)
        # insert_one sets _id on the dict it is given
        result = self.collection(collection_name).insert_one(data_dict)
        return str(result.inserted_id)

    def get_documents(
        self,
        collection_name: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.collection(collection_name).find(filter_dict or {})
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)
