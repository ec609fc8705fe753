"""
Generic Firestore repository for CRM collections.

A repository wraps one named collection and converts raw documents into its
pydantic model. Every entity service subclasses FirestoreRepository and adds
query helpers on top of get_all_by_company / update.
"""
import logging
import math
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Generic, Iterable, List, Optional, Sequence, Type, TypeVar, Union

from google.cloud import firestore
from google.cloud.firestore import ArrayRemove, ArrayUnion, Increment, Query

import sys
from pathlib import Path
sys.path.append(str(Path(__file__).parent.parent))

from config import get_firestore_client
from models.base import FirestoreModel
from models.enums import StrEnum
from services.collections import COMPANY_FIELD, CREATED_AT, DELETED_AT, IS_DELETED, UPDATED_AT
from services.query_filters import Equals, FilterLike, OrderBy, OrderLike, as_order, validate_filters

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=FirestoreModel)

Unsubscribe = Callable[[], None]

# Batch operation types, including the camelCase spellings
BATCH_TYPES = {
    "create": "create",
    "create_with_id": "create_with_id",
    "createWithId": "create_with_id",
    "update": "update",
    "delete": "delete",
    "soft_delete": "soft_delete",
    "softDelete": "soft_delete",
}

# Firestore caps a single commit at 500 writes
MAX_BATCH_SIZE = 500


class DocumentNotFoundError(LookupError):
    """Raised when a document is missing or belongs to another company"""

    def __init__(self, collection: str, doc_id: str):
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"{collection} document not found: {doc_id}")


def _operation_type(operation: Any) -> Optional[str]:
    if not isinstance(operation, dict) or not isinstance(operation.get("type"), str):
        return None
    return BATCH_TYPES.get(operation["type"])


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _get_query_count(query: Query) -> int:
    """Return the number of documents matching a query using count aggregation.

    Aggregation runs server-side and returns only the count, so pagination
    totals never require streaming the whole result set. Returns -1 when the
    backend does not support aggregation.
    """
    try:
        count_query = query.count()
        results = count_query.get()
        if results and results[0] and hasattr(results[0][0], "value"):
            return int(results[0][0].value)
    except Exception as e:
        logger.warning(f"Count aggregation failed: {e}")
    return -1


class FirestoreRepository(Generic[ModelT]):
    """CRUD, listing, pagination, subscriptions and batches for one collection"""

    collection_name: str = ""
    model: Type[ModelT] = FirestoreModel
    status_field: Optional[str] = None
    status_enum: Optional[Type[StrEnum]] = None
    default_order: Sequence[OrderBy] = (OrderBy(UPDATED_AT, "desc"),)

    def __init__(self, db=None, collection_name: Optional[str] = None):
        if collection_name:
            self.collection_name = collection_name
        if not self.collection_name:
            raise ValueError(f"{type(self).__name__} needs a collection name")
        try:
            self.db = db if db is not None else get_firestore_client()
            self.collection = self.db.collection(self.collection_name)
        except Exception as e:
            logger.error(f"Failed to initialize repository for {self.collection_name}: {e}")
            raise

    # Conversion helpers

    def _to_model(self, snapshot) -> Optional[ModelT]:
        if snapshot is None or not snapshot.exists:
            return None
        return self.model.from_firestore(snapshot.id, snapshot.to_dict())

    def _prepare_create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Stamp lifecycle fields, overwriting anything the caller sent for them"""
        payload = {key: value for key, value in dict(data).items() if key != "id"}
        payload[CREATED_AT] = firestore.SERVER_TIMESTAMP
        payload[UPDATED_AT] = firestore.SERVER_TIMESTAMP
        payload[IS_DELETED] = False
        return payload

    def _prepare_update(self, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = {key: value for key, value in dict(data).items() if key != "id"}
        payload[UPDATED_AT] = firestore.SERVER_TIMESTAMP
        return payload

    def new_id(self) -> str:
        """Reserve a store-generated id without writing"""
        return self.collection.document().id

    # CRUD

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create a document with a generated id.

        Returns the id plus the written payload; createdAt/updatedAt are the
        unresolved SERVER_TIMESTAMP sentinel, not the committed server time.
        """
        try:
            payload = self._prepare_create(data)
            doc_ref = self.collection.document()
            doc_ref.set(payload)
            logger.info(f"Created {self.collection_name} document: {doc_ref.id}")
            return {"id": doc_ref.id, **payload}
        except Exception as e:
            logger.error(f"Failed to create {self.collection_name} document: {e}")
            raise

    def create_with_id(self, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Create or overwrite a document under a caller-chosen id (last write wins)"""
        try:
            payload = self._prepare_create(data)
            self.collection.document(doc_id).set(payload)
            logger.info(f"Created {self.collection_name} document with id: {doc_id}")
            return {"id": doc_id, **payload}
        except Exception as e:
            logger.error(f"Failed to create {self.collection_name} document {doc_id}: {e}")
            raise

    def get_snapshot(self, doc_id: str):
        try:
            return self.collection.document(doc_id).get()
        except Exception as e:
            logger.error(f"Failed to get {self.collection_name} document {doc_id}: {e}")
            raise

    def get_by_id(self, doc_id: str) -> Optional[ModelT]:
        return self._to_model(self.get_snapshot(doc_id))

    def update(self, doc_id: str, data: Dict[str, Any]) -> Optional[ModelT]:
        """Merge fields into an existing document and return the re-read model.

        Dotted keys address nested fields. No business validation happens here;
        a missing document raises google.api_core.exceptions.NotFound.
        """
        try:
            self.collection.document(doc_id).update(self._prepare_update(data))
            logger.info(f"Updated {self.collection_name} document: {doc_id}")
        except Exception as e:
            logger.error(f"Failed to update {self.collection_name} document {doc_id}: {e}")
            raise
        return self.get_by_id(doc_id)

    def delete(self, doc_id: str) -> bool:
        try:
            self.collection.document(doc_id).delete()
            logger.info(f"Deleted {self.collection_name} document: {doc_id}")
            return True
        except Exception as e:
            logger.error(f"Failed to delete {self.collection_name} document {doc_id}: {e}")
            raise

    def soft_delete(self, doc_id: str) -> Optional[ModelT]:
        return self.update(doc_id, {IS_DELETED: True, DELETED_AT: firestore.SERVER_TIMESTAMP})

    def restore(self, doc_id: str) -> Optional[ModelT]:
        return self.update(doc_id, {IS_DELETED: False, DELETED_AT: None})

    # Array fields

    def append_to_array(self, doc_id: str, field: str, *values: Any) -> Optional[ModelT]:
        """Atomically append elements to an array field"""
        return self.update(doc_id, {field: ArrayUnion(list(values))})

    def remove_from_array(self, doc_id: str, field: str, *values: Any) -> Optional[ModelT]:
        """Atomically remove every element equal to one of values"""
        return self.update(doc_id, {field: ArrayRemove(list(values))})

    def increment(self, doc_id: str, field: str, amount: Union[int, float]) -> Optional[ModelT]:
        return self.update(doc_id, {field: Increment(amount)})

    # Listing

    def _resolve_cursor(self, start_after):
        if isinstance(start_after, FirestoreModel):
            start_after = start_after.id
        if isinstance(start_after, str):
            snapshot = self.get_snapshot(start_after)
            if not snapshot.exists:
                logger.warning(f"Cursor document {start_after} not found in {self.collection_name}")
                raise DocumentNotFoundError(self.collection_name, start_after)
            return snapshot
        return start_after

    def _build_query(
        self,
        filters: Optional[Sequence[FilterLike]] = None,
        order_by: Optional[Sequence[OrderLike]] = None,
        limit: Optional[int] = None,
        start_after=None,
        include_deleted: bool = False,
        offset: Optional[int] = None,
    ):
        clauses = validate_filters(filters or [])
        if not include_deleted:
            clauses.append(Equals(IS_DELETED, False))

        query = self.collection
        for clause in clauses:
            query = query.where(filter=clause.to_field_filter())
        for order in order_by or []:
            order = as_order(order)
            query = query.order_by(order.field, direction=order.firestore_direction)
        if start_after is not None:
            query = query.start_after(self._resolve_cursor(start_after))
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        return query

    def get_all(
        self,
        filters: Optional[Sequence[FilterLike]] = None,
        order_by: Optional[Sequence[OrderLike]] = None,
        limit: Optional[int] = None,
        start_after=None,
        include_deleted: bool = False,
    ) -> List[ModelT]:
        """List documents matching every filter, in store order.

        Soft-deleted documents are excluded unless include_deleted is set.
        start_after takes a snapshot, a model or a document id.
        """
        try:
            query = self._build_query(filters, order_by, limit, start_after, include_deleted)
            return [self._to_model(doc) for doc in query.stream()]
        except Exception as e:
            logger.error(f"Failed to list {self.collection_name} documents: {e}")
            raise

    def get_all_by_company(self, company_id: str, filters: Optional[Sequence[FilterLike]] = None, **options) -> List[ModelT]:
        if not company_id:
            raise ValueError("company_id is required")
        return self.get_all([Equals(COMPANY_FIELD, company_id)] + list(filters or []), **options)

    def count(self, filters: Optional[Sequence[FilterLike]] = None, include_deleted: bool = False,
              order_by: Optional[Sequence[OrderLike]] = None) -> int:
        query = self._build_query(filters, order_by=order_by, include_deleted=include_deleted)
        total = _get_query_count(query)
        if total < 0:
            total = sum(1 for _ in query.stream())
        return total

    def get_paginated(
        self,
        page: int = 1,
        page_size: int = 10,
        filters: Optional[Sequence[FilterLike]] = None,
        order_by: Optional[Sequence[OrderLike]] = None,
        include_deleted: bool = False,
    ) -> Dict[str, Any]:
        """Return one page plus pagination metadata.

        The total comes from a count aggregation; the requested page is
        clamped to [1, total_pages] and fetched with offset/limit, so page
        cost on the server grows with the offset.
        """
        if page_size < 1:
            raise ValueError("page_size must be at least 1")
        orders = list(order_by) if order_by else list(self.default_order)
        try:
            total_items = self.count(filters, include_deleted=include_deleted, order_by=orders)
            total_pages = math.ceil(total_items / page_size) if total_items else 0
            page = max(1, min(int(page or 1), max(total_pages, 1)))

            query = self._build_query(
                filters,
                order_by=orders,
                limit=page_size,
                include_deleted=include_deleted,
                offset=(page - 1) * page_size,
            )
            items = [self._to_model(doc) for doc in query.stream()]
        except Exception as e:
            logger.error(f"Failed to paginate {self.collection_name} documents: {e}")
            raise

        return {
            "items": items,
            "pagination": {
                "page": page,
                "page_size": page_size,
                "total_items": total_items,
                "total_pages": total_pages,
            },
        }

    def get_paginated_by_company(self, company_id: str, filters: Optional[Sequence[FilterLike]] = None, **options) -> Dict[str, Any]:
        if not company_id:
            raise ValueError("company_id is required")
        return self.get_paginated(filters=[Equals(COMPANY_FIELD, company_id)] + list(filters or []), **options)

    # Subscriptions

    def subscribe_to_document(self, doc_id: str, callback: Callable[[Optional[ModelT]], None]) -> Unsubscribe:
        """Invoke callback with the current model (or None) on every change.

        Callbacks run on the client's listener thread. The caller owns the
        returned unsubscribe function.
        """
        def on_snapshot(docs, changes, read_time):
            callback(self._to_model(docs[0]) if docs else None)

        try:
            watch = self.collection.document(doc_id).on_snapshot(on_snapshot)
        except Exception as e:
            logger.error(f"Failed to subscribe to {self.collection_name} document {doc_id}: {e}")
            raise
        return watch.unsubscribe

    def subscribe_to_collection(
        self,
        callback: Callable[[List[ModelT]], None],
        filters: Optional[Sequence[FilterLike]] = None,
        order_by: Optional[Sequence[OrderLike]] = None,
        limit: Optional[int] = None,
        include_deleted: bool = False,
    ) -> Unsubscribe:
        query = self._build_query(filters, order_by, limit, include_deleted=include_deleted)

        def on_snapshot(docs, changes, read_time):
            callback([self._to_model(doc) for doc in docs])

        try:
            watch = query.on_snapshot(on_snapshot)
        except Exception as e:
            logger.error(f"Failed to subscribe to {self.collection_name} collection: {e}")
            raise
        return watch.unsubscribe

    # Batches

    def batch_write(self, operations: Iterable[Dict[str, Any]]) -> bool:
        """Commit create/create_with_id/update/delete/soft_delete operations atomically.

        Every SERVER_TIMESTAMP in the commit resolves to the same time.
        Entries with an unknown type or missing id/data are skipped with a
        warning instead of failing the batch.
        """
        batch = self.db.batch()
        staged = 0
        for index, operation in enumerate(operations):
            op_type = _operation_type(operation)
            doc_id = operation.get("id") if isinstance(operation, dict) else None
            data = operation.get("data") if isinstance(operation, dict) else None

            if op_type is None:
                logger.warning(f"Skipping batch operation #{index} with unknown type: {operation!r}")
                continue
            if op_type in ("create", "create_with_id", "update") and not isinstance(data, dict):
                logger.warning(f"Skipping {op_type} batch operation #{index} without data")
                continue
            if op_type != "create" and not doc_id:
                logger.warning(f"Skipping {op_type} batch operation #{index} without id")
                continue

            if op_type == "create":
                batch.set(self.collection.document(), self._prepare_create(data))
            elif op_type == "create_with_id":
                batch.set(self.collection.document(doc_id), self._prepare_create(data))
            elif op_type == "update":
                batch.update(self.collection.document(doc_id), self._prepare_update(data))
            elif op_type == "delete":
                batch.delete(self.collection.document(doc_id))
            else:
                batch.update(
                    self.collection.document(doc_id),
                    self._prepare_update({IS_DELETED: True, DELETED_AT: firestore.SERVER_TIMESTAMP}),
                )
            staged += 1

        if staged > MAX_BATCH_SIZE:
            raise ValueError(f"A batch holds at most {MAX_BATCH_SIZE} operations, got {staged}")
        if not staged:
            logger.info(f"Batch on {self.collection_name} had no valid operations")
            return True

        try:
            batch.commit()
            logger.info(f"Committed batch of {staged} operations on {self.collection_name}")
            return True
        except Exception as e:
            logger.error(f"Batch write on {self.collection_name} failed: {e}")
            raise

    # Status and assignment helpers

    def _require_status_field(self) -> str:
        if not self.status_field:
            raise ValueError(f"{self.collection_name} has no status field")
        return self.status_field

    def get_by_status(self, company_id: str, status: str, filters: Optional[Sequence[FilterLike]] = None, **options) -> List[ModelT]:
        field = self._require_status_field()
        return self.get_all_by_company(company_id, [Equals(field, status)] + list(filters or []), **options)

    def update_status(self, doc_id: str, status: str, extra: Optional[Dict[str, Any]] = None) -> Optional[ModelT]:
        """Validate status against the entity's enum and write it"""
        field = self._require_status_field()
        value = self.status_enum.validate(status) if self.status_enum else status
        return self.update(doc_id, {field: value, **(extra or {})})

    def assign_to(self, doc_id: str, user_id: str, field: str = "assignedTo") -> Optional[ModelT]:
        if not user_id:
            raise ValueError("User ID is required")
        return self.update(doc_id, {field: user_id})

    def require(self, doc_id: str) -> ModelT:
        model = self.get_by_id(doc_id)
        if model is None:
            raise DocumentNotFoundError(self.collection_name, doc_id)
        return model

    def scoped(self, company_id: str) -> "CompanyScopedRepository[ModelT]":
        return CompanyScopedRepository(self, company_id)


class CompanyScopedRepository(Generic[ModelT]):
    """A repository view bound to one company.

    Every listing filters on company_id, every create stamps it, and a
    document owned by another company is reported as missing.
    """

    def __init__(self, repository: FirestoreRepository[ModelT], company_id: str):
        if not company_id:
            raise ValueError("company_id is required for a scoped repository")
        self.repository = repository
        self.company_id = company_id

    @property
    def collection_name(self) -> str:
        return self.repository.collection_name

    def owns(self, model: Optional[FirestoreModel]) -> bool:
        return model is not None and model.company_id == self.company_id

    def require(self, doc_id: str) -> ModelT:
        model = self.repository.get_by_id(doc_id)
        if not self.owns(model):
            raise DocumentNotFoundError(self.collection_name, doc_id)
        return model

    def _with_company(self, data: Dict[str, Any]) -> Dict[str, Any]:
        payload = dict(data or {})
        payload[COMPANY_FIELD] = self.company_id
        return payload

    def _company_filters(self, filters: Optional[Sequence[FilterLike]]) -> List[FilterLike]:
        return [Equals(COMPANY_FIELD, self.company_id)] + list(filters or [])

    def _check_company_change(self, data: Dict[str, Any]) -> Dict[str, Any]:
        if COMPANY_FIELD in data and data[COMPANY_FIELD] != self.company_id:
            raise ValueError("company_id cannot be changed")
        return {key: value for key, value in data.items() if key != COMPANY_FIELD}

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.repository.create(self._with_company(data))

    def create_with_id(self, doc_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        existing = self.repository.get_by_id(doc_id)
        if existing is not None and not self.owns(existing):
            raise ValueError(f"Document id {doc_id} is not available")
        return self.repository.create_with_id(doc_id, self._with_company(data))

    def get_by_id(self, doc_id: str) -> Optional[ModelT]:
        model = self.repository.get_by_id(doc_id)
        return model if self.owns(model) else None

    def update(self, doc_id: str, data: Dict[str, Any]) -> Optional[ModelT]:
        payload = self._check_company_change(data)
        self.require(doc_id)
        return self.repository.update(doc_id, payload)

    def delete(self, doc_id: str) -> bool:
        self.require(doc_id)
        return self.repository.delete(doc_id)

    def soft_delete(self, doc_id: str) -> Optional[ModelT]:
        self.require(doc_id)
        return self.repository.soft_delete(doc_id)

    def restore(self, doc_id: str) -> Optional[ModelT]:
        self.require(doc_id)
        return self.repository.restore(doc_id)

    def get_all(self, filters: Optional[Sequence[FilterLike]] = None, **options) -> List[ModelT]:
        return self.repository.get_all_by_company(self.company_id, filters, **options)

    def get_paginated(self, filters: Optional[Sequence[FilterLike]] = None, **options) -> Dict[str, Any]:
        return self.repository.get_paginated(filters=self._company_filters(filters), **options)

    def count(self, filters: Optional[Sequence[FilterLike]] = None, **options) -> int:
        return self.repository.count(self._company_filters(filters), **options)

    def get_by_status(self, status: str, **options) -> List[ModelT]:
        return self.repository.get_by_status(self.company_id, status, **options)

    def update_status(self, doc_id: str, status: str, extra: Optional[Dict[str, Any]] = None) -> Optional[ModelT]:
        payload = self._check_company_change(extra or {})
        self.require(doc_id)
        return self.repository.update_status(doc_id, status, payload)

    def subscribe_to_document(self, doc_id: str, callback: Callable[[Optional[ModelT]], None]) -> Unsubscribe:
        self.require(doc_id)

        def scoped_callback(model):
            callback(model if self.owns(model) else None)

        return self.repository.subscribe_to_document(doc_id, scoped_callback)

    def subscribe_to_collection(self, callback: Callable[[List[ModelT]], None],
                                filters: Optional[Sequence[FilterLike]] = None, **options) -> Unsubscribe:
        return self.repository.subscribe_to_collection(callback, self._company_filters(filters), **options)

    def batch_write(self, operations: Iterable[Dict[str, Any]]) -> bool:
        """Stamp company_id on creates and reject operations on foreign documents"""
        scoped_operations = []
        for operation in operations:
            op_type = _operation_type(operation)
            if op_type in ("create", "create_with_id") and isinstance(operation.get("data"), dict):
                if op_type == "create_with_id" and operation.get("id"):
                    existing = self.repository.get_by_id(operation["id"])
                    if existing is not None and not self.owns(existing):
                        raise DocumentNotFoundError(self.collection_name, operation["id"])
                operation = {**operation, "data": self._with_company(operation["data"])}
            elif op_type in ("update", "delete", "soft_delete") and operation.get("id"):
                self.require(operation["id"])
                if op_type == "update" and isinstance(operation.get("data"), dict):
                    operation = {**operation, "data": self._check_company_change(operation["data"])}
            scoped_operations.append(operation)
        return self.repository.batch_write(scoped_operations)
