"""Document store service: Firestore (production) or in-memory (development).

Both implementations accept a translated QuerySpec and apply predicates
(ANDed), ordering, projection, limit and offset, and commit batches of
writes atomically.
"""

import copy
import operator
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Tuple

from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2 import service_account

from core.config import Settings
from core.logging import get_logger
from models.query import BatchOperation, OperationType, Predicate, QuerySpec, SortDirection

logger = get_logger(__name__)

# (document id, document data)
Document = Tuple[str, Dict[str, Any]]


class DocumentNotFoundError(Exception):
    """Update targeted a document that does not exist."""


class DocumentStore(Protocol):
    """Collaborator contract used by the query optimizer."""

    async def startup(self) -> None:
        ...

    async def shutdown(self) -> None:
        ...

    async def ping(self) -> bool:
        ...

    async def run_query(self, spec: QuerySpec) -> List[Document]:
        ...

    async def count(self, collection: str, predicates: List[Predicate]) -> int:
        ...

    async def commit_batch(self, operations: List[BatchOperation]) -> List[Dict[str, Any]]:
        ...


def _write_result(op: BatchOperation, update_time: Optional[datetime]) -> Dict[str, Any]:
    return {
        "collection": op.collection,
        "document": op.document,
        "type": op.type.value,
        "updateTime": update_time.isoformat() if update_time else None,
    }


# ============================================================================
# Firestore
# ============================================================================

class FirestoreDocumentStore:
    """google-cloud-firestore AsyncClient wrapper."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client: Optional[firestore.AsyncClient] = None

    async def startup(self) -> None:
        """Create the Firestore client."""
        try:
            credentials = None
            if self.settings.firestore_credentials_file:
                credentials = service_account.Credentials.from_service_account_file(
                    self.settings.firestore_credentials_file
                )
            self.client = firestore.AsyncClient(
                project=self.settings.firestore_project_id,
                credentials=credentials,
                database=self.settings.firestore_database,
            )
            logger.info("Firestore client initialized",
                        project=self.settings.firestore_project_id,
                        database=self.settings.firestore_database)
        except Exception as e:
            logger.error("Firestore startup failed", error=str(e))
            raise

    async def shutdown(self) -> None:
        if self.client is not None:
            self.client = None
            logger.info("Firestore client released")

    def _client(self) -> firestore.AsyncClient:
        if self.client is None:
            raise RuntimeError("Firestore not initialized")
        return self.client

    async def ping(self) -> bool:
        """Check connectivity by listing (at most one) root collection."""
        try:
            async for _ in self._client().collections():
                break
            return True
        except Exception as e:
            logger.warning("Firestore ping failed", error=str(e))
            return False

    def _filtered(self, collection: str, predicates: List[Predicate]):
        query = self._client().collection(collection)
        for predicate in predicates:
            query = query.where(filter=FieldFilter(predicate.field, predicate.op, predicate.value))
        return query

    async def count(self, collection: str, predicates: List[Predicate]) -> int:
        """Server-side COUNT aggregation (no documents are read)."""
        results = await self._filtered(collection, predicates).count(alias="total").get()
        return int(results[0][0].value)

    async def run_query(self, spec: QuerySpec) -> List[Document]:
        query = self._filtered(spec.collection, spec.predicates)

        if spec.order_by:
            direction = (firestore.Query.DESCENDING
                         if spec.order_by.direction == SortDirection.DESC
                         else firestore.Query.ASCENDING)
            query = query.order_by(spec.order_by.field, direction=direction)

        if spec.select:
            query = query.select(spec.select)

        if spec.limit:
            query = query.limit(spec.limit)

        if spec.offset:
            query = query.offset(spec.offset)

        snapshot = await query.get()
        return [(doc.id, doc.to_dict() or {}) for doc in snapshot]

    async def commit_batch(self, operations: List[BatchOperation]) -> List[Dict[str, Any]]:
        client = self._client()
        batch = client.batch()

        for op in operations:
            ref = client.collection(op.collection).document(op.document)
            if op.type == OperationType.CREATE:
                batch.set(ref, op.data)
            elif op.type == OperationType.UPDATE:
                batch.update(ref, op.data)
            else:
                batch.delete(ref)

        write_results = await batch.commit()
        return [
            _write_result(op, getattr(result, "update_time", None))
            for op, result in zip(operations, write_results)
        ]


# ============================================================================
# In-memory (development / tests)
# ============================================================================

_MISSING = object()

COMPARATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    ">=": operator.ge,
    "<=": operator.le,
    ">": operator.gt,
    "<": operator.lt,
    "in": lambda actual, target: actual in target,
}


def get_field(data: Dict[str, Any], field_path: str) -> Any:
    """Resolve a dotted field path, returning _MISSING when absent."""
    current: Any = data
    for part in field_path.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def matches(data: Dict[str, Any], predicate: Predicate) -> bool:
    """Evaluate one predicate. Documents missing the field never match."""
    actual = get_field(data, predicate.field)
    if actual is _MISSING:
        return False
    compare = COMPARATORS.get(predicate.op)
    if compare is None:
        raise ValueError(f"Unsupported operator: {predicate.op}")
    try:
        return bool(compare(actual, predicate.value))
    except TypeError:
        # Values of different types never compare (Firestore orders by type)
        return False


class MemoryDocumentStore:
    """Dict-of-dicts document store with Firestore-like query semantics."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    async def startup(self) -> None:
        logger.info("Using in-memory document store")

    async def shutdown(self) -> None:
        self._collections.clear()

    async def ping(self) -> bool:
        return True

    def seed(self, collection: str, documents: Dict[str, Dict[str, Any]]) -> None:
        """Load fixture documents keyed by id."""
        target = self._collections.setdefault(collection, {})
        for doc_id, data in documents.items():
            target[doc_id] = copy.deepcopy(data)

    def documents(self, collection: str) -> Dict[str, Dict[str, Any]]:
        """Snapshot of a collection (copies)."""
        return copy.deepcopy(self._collections.get(collection, {}))

    def _filtered(self, collection: str, predicates: List[Predicate]) -> List[Document]:
        docs: Iterable[Document] = sorted(self._collections.get(collection, {}).items())
        for predicate in predicates:
            docs = [(doc_id, data) for doc_id, data in docs if matches(data, predicate)]
        return list(docs)

    async def count(self, collection: str, predicates: List[Predicate]) -> int:
        return len(self._filtered(collection, predicates))

    async def run_query(self, spec: QuerySpec) -> List[Document]:
        docs = self._filtered(spec.collection, spec.predicates)

        if spec.order_by:
            field_path = spec.order_by.field
            docs = [(doc_id, data) for doc_id, data in docs
                    if get_field(data, field_path) is not _MISSING]
            docs.sort(key=lambda doc: get_field(doc[1], field_path),
                      reverse=spec.order_by.direction == SortDirection.DESC)

        if spec.select:
            docs = [(doc_id, {f: data[f] for f in spec.select if f in data})
                    for doc_id, data in docs]

        start = spec.offset or 0
        end = start + spec.limit if spec.limit else None
        return [(doc_id, copy.deepcopy(data)) for doc_id, data in docs[start:end]]

    async def commit_batch(self, operations: List[BatchOperation]) -> List[Dict[str, Any]]:
        # Validate the whole batch before touching anything so it applies atomically
        existing = {
            (op.collection, op.document)
            for op in operations
            if op.document in self._collections.get(op.collection, {})
        }
        for op in operations:
            key = (op.collection, op.document)
            if op.type == OperationType.CREATE:
                existing.add(key)
            elif op.type == OperationType.DELETE:
                existing.discard(key)
            elif key not in existing:
                raise DocumentNotFoundError(f"No document to update: {op.collection}/{op.document}")

        update_time = datetime.now(timezone.utc)
        results = []
        for op in operations:
            collection = self._collections.setdefault(op.collection, {})
            if op.type == OperationType.CREATE:
                collection[op.document] = copy.deepcopy(op.data)
            elif op.type == OperationType.UPDATE:
                collection[op.document].update(copy.deepcopy(op.data))
            else:
                collection.pop(op.document, None)
            results.append(_write_result(op, update_time))
        return results


def create_document_store(settings: Settings) -> DocumentStore:
    """Pick the document store implementation from DOCUMENT_STORE."""
    if settings.document_store == "firestore":
        return FirestoreDocumentStore(settings)
    return MemoryDocumentStore()
