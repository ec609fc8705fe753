"""
In-memory Firestore client for testing without GCP dependencies.

Implements the subset of the google-cloud-firestore client surface the
services use: collections, documents, structured queries, count
aggregation, snapshot listeners and atomic write batches. Sentinels and
transforms (SERVER_TIMESTAMP, DELETE_FIELD, ArrayUnion, ArrayRemove,
Increment) are the real library objects and are resolved on write.
"""
import copy
import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore import ArrayRemove, ArrayUnion, Increment

logger = logging.getLogger(__name__)

_MISSING = object()


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _get_path(data: Dict[str, Any], field_path: str) -> Any:
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, dict) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _set_path(data: Dict[str, Any], field_path: str, value: Any) -> None:
    parts = field_path.split(".")
    target = data
    for part in parts[:-1]:
        if not isinstance(target.get(part), dict):
            target[part] = {}
        target = target[part]
    target[parts[-1]] = value


def _delete_path(data: Dict[str, Any], field_path: str) -> None:
    parts = field_path.split(".")
    target = data
    for part in parts[:-1]:
        target = target.get(part)
        if not isinstance(target, dict):
            return
    target.pop(parts[-1], None)


def _resolve(current: Any, value: Any, timestamp: datetime) -> Any:
    """Apply a sentinel or transform against the current field value"""
    if value is firestore.SERVER_TIMESTAMP:
        return timestamp
    if isinstance(value, ArrayUnion):
        existing = list(current) if isinstance(current, list) else []
        for item in value.values:
            if item not in existing:
                existing.append(copy.deepcopy(item))
        return existing
    if isinstance(value, ArrayRemove):
        existing = list(current) if isinstance(current, list) else []
        return [item for item in existing if item not in value.values]
    if isinstance(value, Increment):
        base = current if isinstance(current, (int, float)) and not isinstance(current, bool) else 0
        return base + value.value
    if isinstance(value, dict):
        return {key: _resolve(_MISSING, item, timestamp) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve(_MISSING, item, timestamp) for item in value]
    return copy.deepcopy(value)


def _apply_fields(target: Dict[str, Any], data: Dict[str, Any], timestamp: datetime, dotted: bool) -> None:
    for key, value in data.items():
        if dotted:
            if value is firestore.DELETE_FIELD:
                _delete_path(target, key)
                continue
            current = _get_path(target, key)
            _set_path(target, key, _resolve(current, value, timestamp))
        else:
            if value is firestore.DELETE_FIELD:
                target.pop(key, None)
            elif isinstance(value, dict) and isinstance(target.get(key), dict):
                _apply_fields(target[key], value, timestamp, dotted=False)
            else:
                target[key] = _resolve(target.get(key, _MISSING), value, timestamp)


# Firestore cross-type ordering: null, booleans, numbers, timestamps, strings, bytes, arrays, maps
def _type_rank(value: Any) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 2
    if isinstance(value, datetime):
        return 3
    if isinstance(value, str):
        return 4
    if isinstance(value, bytes):
        return 5
    if isinstance(value, (list, tuple)):
        return 8
    return 9


def _comparable(value: Any) -> Any:
    if isinstance(value, datetime) and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    if isinstance(value, (list, tuple)):
        return [(_type_rank(item), _comparable(item)) for item in value]
    if isinstance(value, dict):
        return sorted((str(k), str(v)) for k, v in value.items())
    if value is None:
        return 0
    return value


def _sort_key(value: Any) -> Tuple[int, Any]:
    return _type_rank(value), _comparable(value)


def _matches(data: Dict[str, Any], field_path: str, op: str, target: Any) -> bool:
    value = _get_path(data, field_path)
    if value is _MISSING:
        return False
    if op == "==":
        return _sort_key(value) == _sort_key(target)
    if op == "!=":
        return value is not None and _sort_key(value) != _sort_key(target)
    if op in ("<", "<=", ">", ">="):
        if target is None or _type_rank(value) != _type_rank(target):
            return False
        left, right = _comparable(value), _comparable(target)
        return {
            "<": left < right,
            "<=": left <= right,
            ">": left > right,
            ">=": left >= right,
        }[op]
    if op == "array_contains":
        return isinstance(value, list) and target in value
    if op == "array_contains_any":
        return isinstance(value, list) and any(item in value for item in target)
    if op == "in":
        return any(_sort_key(value) == _sort_key(item) for item in target)
    if op == "not-in":
        return value is not None and all(_sort_key(value) != _sort_key(item) for item in target)
    raise ValueError(f"Mock: unsupported operator {op}")


class MockDocumentSnapshot:
    def __init__(self, reference: "MockDocumentReference", data: Optional[Dict[str, Any]]):
        self.reference = reference
        self.id = reference.id
        self._data = data
        self.exists = data is not None
        self.read_time = _now()

    def to_dict(self) -> Optional[Dict[str, Any]]:
        return copy.deepcopy(self._data) if self._data is not None else None

    def get(self, field_path: str) -> Any:
        value = _get_path(self._data or {}, field_path)
        if value is _MISSING:
            raise KeyError(field_path)
        return copy.deepcopy(value)


class MockWatch:
    def __init__(self, client: "MockFirestoreClient", listener: Callable[[], None]):
        self._client = client
        self._listener = listener

    def unsubscribe(self) -> None:
        self._client._remove_listener(self._listener)


class MockDocumentReference:
    def __init__(self, client: "MockFirestoreClient", collection_name: str, doc_id: str):
        self._client = client
        self.collection_name = collection_name
        self.id = doc_id

    @property
    def path(self) -> str:
        return f"{self.collection_name}/{self.id}"

    def get(self) -> MockDocumentSnapshot:
        return MockDocumentSnapshot(self, self._client._read(self.collection_name, self.id))

    def set(self, data: Dict[str, Any], merge: bool = False) -> None:
        self._client._commit([("set", self, data, merge)])

    def update(self, data: Dict[str, Any]) -> None:
        self._client._commit([("update", self, data, False)])

    def delete(self) -> None:
        self._client._commit([("delete", self, None, False)])

    def on_snapshot(self, callback: Callable) -> MockWatch:
        def listener():
            callback([self.get()], [], _now())

        return self._client._add_listener(listener)


class MockQuery:
    """Immutable query over one mock collection"""

    def __init__(
        self,
        client: "MockFirestoreClient",
        collection_name: str,
        filters: Tuple = (),
        orders: Tuple = (),
        limit: Optional[int] = None,
        offset: int = 0,
        cursor: Optional[Dict[str, Any]] = None,
    ):
        self._client = client
        self._collection_name = collection_name
        self._filters = filters
        self._orders = orders
        self._limit = limit
        self._offset = offset
        self._cursor = cursor

    def _copy(self, **changes) -> "MockQuery":
        state = {
            "filters": self._filters,
            "orders": self._orders,
            "limit": self._limit,
            "offset": self._offset,
            "cursor": self._cursor,
        }
        state.update(changes)
        return MockQuery(self._client, self._collection_name, **state)

    def where(self, field_path: Optional[str] = None, op_string: Optional[str] = None, value: Any = None, *, filter=None) -> "MockQuery":
        if filter is not None:
            field_path, op_string, value = filter.field_path, filter.op_string, filter.value
        return self._copy(filters=self._filters + ((field_path, op_string, value),))

    def order_by(self, field_path: str, direction: str = firestore.Query.ASCENDING) -> "MockQuery":
        return self._copy(orders=self._orders + ((field_path, direction),))

    def limit(self, count: int) -> "MockQuery":
        return self._copy(limit=count)

    def offset(self, num_to_skip: int) -> "MockQuery":
        return self._copy(offset=num_to_skip)

    def start_after(self, document_fields_or_snapshot) -> "MockQuery":
        if isinstance(document_fields_or_snapshot, MockDocumentSnapshot):
            cursor = {"id": document_fields_or_snapshot.id, "data": document_fields_or_snapshot.to_dict() or {}}
        else:
            cursor = {"id": None, "data": dict(document_fields_or_snapshot)}
        return self._copy(cursor=cursor)

    def _ordered(self, entries: List[Tuple[str, Dict[str, Any]]]) -> List[Tuple[str, Dict[str, Any]]]:
        for field_path, _ in self._orders:
            entries = [entry for entry in entries if _get_path(entry[1], field_path) is not _MISSING]
        tiebreak_desc = bool(self._orders) and self._orders[-1][1] == firestore.Query.DESCENDING
        entries = sorted(entries, key=lambda entry: entry[0] or "", reverse=tiebreak_desc)
        for field_path, direction in reversed(self._orders):
            entries = sorted(
                entries,
                key=lambda entry, fp=field_path: _sort_key(_get_path(entry[1], fp)),
                reverse=direction == firestore.Query.DESCENDING,
            )
        return entries

    def _run(self) -> List[MockDocumentSnapshot]:
        entries = [
            (doc_id, data)
            for doc_id, data in self._client._documents(self._collection_name)
            if all(_matches(data, f, op, v) for f, op, v in self._filters)
        ]
        if self._cursor is not None:
            cursor_id = self._cursor["id"]
            cursor_data = self._cursor["data"]
            others = [entry for entry in entries if entry[0] != cursor_id]
            ordered = self._ordered(others + [(cursor_id or "", cursor_data)])
            positions = [i for i, entry in enumerate(ordered) if entry[1] is cursor_data]
            if not positions:
                raise ValueError("Mock: cursor snapshot is missing a field used in order_by")
            entries = ordered[positions[0] + 1:]
        else:
            entries = self._ordered(entries)

        entries = entries[self._offset:]
        if self._limit is not None:
            entries = entries[: self._limit]

        collection = self._client.collection(self._collection_name)
        return [MockDocumentSnapshot(collection.document(doc_id), copy.deepcopy(data)) for doc_id, data in entries]

    def stream(self):
        return iter(self._run())

    def get(self) -> List[MockDocumentSnapshot]:
        return self._run()

    def count(self, alias: Optional[str] = None) -> "MockAggregationQuery":
        return MockAggregationQuery(self, alias or "count")

    def on_snapshot(self, callback: Callable) -> MockWatch:
        def listener():
            callback(self._run(), [], _now())

        return self._client._add_listener(listener)


class MockAggregationResult:
    def __init__(self, alias: str, value: int):
        self.alias = alias
        self.value = value
        self.read_time = _now()


class MockAggregationQuery:
    def __init__(self, query: MockQuery, alias: str):
        self._query = query
        self._alias = alias

    def get(self) -> List[List[MockAggregationResult]]:
        return [[MockAggregationResult(self._alias, len(self._query._run()))]]


class MockCollectionReference(MockQuery):
    def __init__(self, client: "MockFirestoreClient", name: str):
        super().__init__(client, name)
        self.id = name

    def document(self, document_id: Optional[str] = None) -> MockDocumentReference:
        return MockDocumentReference(self._client, self._collection_name, document_id or uuid.uuid4().hex[:20])

    def add(self, data: Dict[str, Any], document_id: Optional[str] = None):
        ref = self.document(document_id)
        ref.set(data)
        return _now(), ref


class MockWriteBatch:
    def __init__(self, client: "MockFirestoreClient"):
        self._client = client
        self._writes: List[Tuple] = []

    def __len__(self) -> int:
        return len(self._writes)

    def set(self, reference: MockDocumentReference, document_data: Dict[str, Any], merge: bool = False) -> None:
        self._writes.append(("set", reference, document_data, merge))

    def update(self, reference: MockDocumentReference, field_updates: Dict[str, Any]) -> None:
        self._writes.append(("update", reference, field_updates, False))

    def delete(self, reference: MockDocumentReference) -> None:
        self._writes.append(("delete", reference, None, False))

    def commit(self) -> List[Any]:
        self._client._commit(self._writes)
        return [_now() for _ in self._writes]


class MockFirestoreClient:
    """Mock Firestore client for testing"""

    def __init__(self, project: str = "mock-project"):
        self.project = project
        self._store: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._listeners: List[Callable[[], None]] = []
        self._lock = threading.RLock()
        self.commit_count = 0
        logger.info("Mock Firestore client initialized")

    def collection(self, name: str) -> MockCollectionReference:
        return MockCollectionReference(self, name)

    def batch(self) -> MockWriteBatch:
        return MockWriteBatch(self)

    def _documents(self, collection_name: str) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            return list(self._store.get(collection_name, {}).items())

    def _read(self, collection_name: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            data = self._store.get(collection_name, {}).get(doc_id)
            return copy.deepcopy(data) if data is not None else None

    def _commit(self, writes: List[Tuple]) -> None:
        """Apply writes atomically with one shared server timestamp"""
        with self._lock:
            staged = copy.deepcopy(self._store)
            timestamp = _now()
            for kind, ref, data, merge in writes:
                documents = staged.setdefault(ref.collection_name, {})
                if kind == "delete":
                    documents.pop(ref.id, None)
                elif kind == "update":
                    if ref.id not in documents:
                        raise gcp_exceptions.NotFound(f"No document to update: {ref.path}")
                    _apply_fields(documents[ref.id], data, timestamp, dotted=True)
                elif merge and ref.id in documents:
                    _apply_fields(documents[ref.id], data, timestamp, dotted=False)
                else:
                    fresh: Dict[str, Any] = {}
                    _apply_fields(fresh, data, timestamp, dotted=False)
                    documents[ref.id] = fresh
                logger.debug(f"Mock: {kind} {ref.path}")

            self._store = staged
            self.commit_count += 1
            listeners = list(self._listeners)

        for listener in listeners:
            listener()

    def _add_listener(self, listener: Callable[[], None]) -> MockWatch:
        with self._lock:
            self._listeners.append(listener)
        listener()
        return MockWatch(self, listener)

    def _remove_listener(self, listener: Callable[[], None]) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def reset(self) -> None:
        with self._lock:
            self._store.clear()
            self._listeners.clear()
