"""
Data access layer: queries and aggregation pipelines over the accounts,
customers and transactions collections.

``DataAccess`` holds no state besides the ``Database`` it was given.
Collection queries return empty results when nothing matches; only the
customer-anchored lookups raise ``NotFoundError``. Store errors are not
caught here.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel

from database import Database, to_object_id, to_str_id

logger = logging.getLogger(__name__)

TOP_CUSTOMERS_LIMIT = 10

Document = Dict[str, Any]
Payload = Union[BaseModel, Document]


class DataAccessError(Exception):
    pass


class NotFoundError(DataAccessError):
    pass


def _as_document(payload: Payload) -> Document:
    if isinstance(payload, BaseModel):
        return payload.model_dump(exclude_none=True)
    return dict(payload)


# Pipelines

def customer_transactions_pipeline(account_ids: List[int]) -> List[Document]:
    return [
        {"$match": {"account_id": {"$in": account_ids}}},
        {
            "$group": {
                "_id": "$account_id",
                "totalTransactionCount": {"$sum": "$transaction_count"},
                "transactions": {"$push": "$transactions"},
            }
        },
    ]


def most_transactions_pipeline(transactions_collection: str, limit: int = TOP_CUSTOMERS_LIMIT) -> List[Document]:
    """Customers ranked by the transaction_count of all buckets of all their accounts."""
    return [
        {"$unwind": "$accounts"},
        {
            "$lookup": {
                "from": transactions_collection,
                "localField": "accounts",
                "foreignField": "account_id",
                "as": "accountTransactions",
            }
        },
        {"$unwind": "$accountTransactions"},
        {
            "$group": {
                "_id": "$_id",
                "username": {"$first": "$username"},
                "totalTransactionCount": {"$sum": "$accountTransactions.transaction_count"},
                "transactions": {"$push": "$accountTransactions"},
            }
        },
        # ties keep whatever order the store produces
        {"$sort": {"totalTransactionCount": -1}},
        {"$limit": limit},
    ]


def transaction_amounts_pipeline(
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
) -> List[Document]:
    """Sum amount and total per transaction_code.

    The date filter is applied only when both bounds are given; with one
    bound or none every line item is counted. ``$toDouble`` fails the
    query if a stored ``total`` is not numeric.
    """
    pipeline: List[Document] = [
        {"$unwind": "$transactions"},
        {"$addFields": {"totalAsDouble": {"$toDouble": "$transactions.total"}}},
    ]
    if start_date and end_date:
        pipeline.append({"$match": {"transactions.date": {"$gte": start_date, "$lte": end_date}}})
    pipeline.append(
        {
            "$group": {
                "_id": "$transactions.transaction_code",
                "totalAmount": {"$sum": "$transactions.amount"},
                "priceTotal": {"$sum": "$totalAsDouble"},
            }
        }
    )
    return pipeline


class DataAccess:
    def __init__(self, database: Database):
        self.db = database

    # Accounts

    def list_accounts(self) -> List[Document]:
        return [to_str_id(d) for d in self.db.get_documents(self.db.settings.accounts_collection)]

    def get_account(self, account_id: int) -> Optional[Document]:
        return to_str_id(self.db.accounts.find_one({"account_id": account_id}))

    def create_account(self, payload: Payload) -> Document:
        doc = _as_document(payload)
        doc.pop("_id", None)
        inserted_id = self.db.create_document(self.db.settings.accounts_collection, doc)
        logger.info("Created account %s", doc.get("account_id"))
        return {"_id": inserted_id, **to_str_id(doc)}

    def update_account(self, document: Payload) -> int:
        """Replace the account whose ``_id`` matches ``document["_id"]``.

        The document must carry the complete target state.
        """
        doc = _as_document(document)
        oid = to_object_id(doc.pop("_id"))
        result = self.db.accounts.replace_one({"_id": oid}, doc)
        return result.matched_count

    def replace_account_fields(self, account_id: int, payload: Payload) -> Optional[Document]:
        account = self.db.accounts.find_one({"account_id": account_id})
        if account is None:
            return None

        data = _as_document(payload)
        account["limit"] = data.get("limit")
        account["products"] = data.get("products")
        account["account_id"] = data.get("account_id")
        self.update_account(account)
        return to_str_id(account)

    def delete_account(self, internal_id: str) -> int:
        result = self.db.accounts.delete_one({"_id": to_object_id(internal_id)})
        if result.deleted_count:
            logger.info("Deleted account %s", internal_id)
        return result.deleted_count

    def get_all_products(self) -> List[str]:
        # first-seen order
        products: Dict[str, None] = {}
        for account in self.db.accounts.find({}, {"products": 1}):
            for product in account.get("products") or []:
                products.setdefault(product, None)
        return list(products)

    # Customers

    def list_customers(self) -> List[Document]:
        return [to_str_id(d) for d in self.db.get_documents(self.db.settings.customers_collection)]

    def find_customers_by_name(self, pattern: str) -> List[Document]:
        docs = self.db.get_documents(
            self.db.settings.customers_collection,
            {"name": {"$regex": pattern, "$options": "i"}},
        )
        return [to_str_id(d) for d in docs]

    def _find_customer(self, customer_id: str) -> Optional[Document]:
        return self.db.customers.find_one({"_id": to_object_id(customer_id)})

    def get_customer_by_internal_id(self, customer_id: str) -> Optional[Document]:
        return to_str_id(self._find_customer(customer_id))

    def get_customer_by_email(self, email: str) -> Optional[Document]:
        return to_str_id(self.db.customers.find_one({"email": email}))

    def create_customer(self, payload: Payload) -> Document:
        doc = _as_document(payload)
        doc.pop("_id", None)
        inserted_id = self.db.create_document(self.db.settings.customers_collection, doc)
        logger.info("Created customer %s", inserted_id)
        return {"_id": inserted_id, **to_str_id(doc)}

    def update_customer(self, customer_id: str, payload: Payload) -> Optional[Document]:
        """Replace the customer with ``payload``; returns the new state, or None if absent."""
        doc = _as_document(payload)
        doc.pop("_id", None)
        oid = to_object_id(customer_id)
        result = self.db.customers.replace_one({"_id": oid}, doc)
        if not result.matched_count:
            return None
        return to_str_id({"_id": oid, **doc})

    def delete_customer(self, customer_id: str) -> int:
        result = self.db.customers.delete_one({"_id": to_object_id(customer_id)})
        if result.deleted_count:
            logger.info("Deleted customer %s", customer_id)
        return result.deleted_count

    def _require_customer(self, customer_id: str) -> Document:
        customer = self._find_customer(customer_id)
        if customer is None:
            raise NotFoundError("Customer not found")
        return customer

    def get_customer_accounts(self, customer_id: str) -> List[Document]:
        customer = self._require_customer(customer_id)
        cursor = self.db.accounts.find({"account_id": {"$in": customer.get("accounts") or []}})
        return [to_str_id(d) for d in cursor]

    # Transactions

    def list_transaction_buckets(self) -> List[Document]:
        return [to_str_id(d) for d in self.db.get_documents(self.db.settings.transactions_collection)]

    def get_transaction_bucket(self, bucket_id: str) -> Optional[Document]:
        return to_str_id(self.db.transactions.find_one({"_id": to_object_id(bucket_id)}))

    def get_customer_transactions(self, customer_id: str) -> Dict[str, Any]:
        customer = self._require_customer(customer_id)
        pipeline = customer_transactions_pipeline(customer.get("accounts") or [])
        groups = list(self.db.transactions.aggregate(pipeline))
        return {"customer": to_str_id(customer), "transactions": to_str_id(groups)}

    def get_customers_with_most_transactions(self) -> List[Document]:
        pipeline = most_transactions_pipeline(self.db.settings.transactions_collection)
        return to_str_id(list(self.db.customers.aggregate(pipeline)))

    def get_all_transaction_amounts(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[Document]:
        pipeline = transaction_amounts_pipeline(start_date, end_date)
        logger.debug("Transaction amounts pipeline: %s", pipeline)
        return list(self.db.transactions.aggregate(pipeline))
