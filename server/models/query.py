"""Document query and batch-write models.

Shared by the document store implementations (core/database.py) and the
query optimizer (services/optimization). All models are plain dataclasses
with camelCase JSON forms matching the HTTP API.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class OperationType(str, Enum):
    """Batch write primitives."""
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class Predicate:
    """Single native filter predicate: ``field op value``."""
    field: str
    op: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "op": self.op, "value": self.value}


@dataclass
class OrderBy:
    """Single-field sort."""
    field: str
    direction: SortDirection = SortDirection.ASC

    def __post_init__(self):
        if not self.field:
            raise ValueError("orderBy.field is required")
        self.direction = SortDirection(str(getattr(self.direction, "value", self.direction)).lower())

    def to_dict(self) -> Dict[str, Any]:
        return {"field": self.field, "direction": self.direction.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrderBy":
        return cls(field=data.get("field", ""), direction=data.get("direction") or "asc")


@dataclass
class QueryOptions:
    """Ordering, projection and pagination for an optimized query."""
    limit: Optional[int] = None
    offset: Optional[int] = None
    order_by: Optional[OrderBy] = None
    select: List[str] = field(default_factory=list)
    cache_key: Optional[str] = None

    @property
    def paginated(self) -> bool:
        return bool(self.limit) or bool(self.offset)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON dict, omitting unset options."""
        data: Dict[str, Any] = {}
        if self.limit is not None:
            data["limit"] = self.limit
        if self.offset is not None:
            data["offset"] = self.offset
        if self.order_by is not None:
            data["orderBy"] = self.order_by.to_dict()
        if self.select:
            data["select"] = list(self.select)
        if self.cache_key:
            data["cacheKey"] = self.cache_key
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "QueryOptions":
        """Create from a camelCase or snake_case dict."""
        if not data:
            return cls()
        order_by = data.get("orderBy", data.get("order_by"))
        if isinstance(order_by, dict):
            order_by = OrderBy.from_dict(order_by)
        select = data.get("select") or []
        return cls(
            limit=data.get("limit"),
            offset=data.get("offset"),
            order_by=order_by,
            select=list(select),
            cache_key=data.get("cacheKey", data.get("cache_key")),
        )


@dataclass
class QuerySpec:
    """A fully translated query ready for a DocumentStore.

    Stores apply predicates (ANDed), then order_by, select, limit, offset.
    """
    collection: str
    predicates: List[Predicate] = field(default_factory=list)
    order_by: Optional[OrderBy] = None
    select: List[str] = field(default_factory=list)
    limit: Optional[int] = None
    offset: Optional[int] = None


@dataclass
class BatchOperation:
    """One document write inside a batch."""
    type: OperationType
    collection: str
    document: str
    data: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        self.type = OperationType(getattr(self.type, "value", self.type))
        if not self.collection or not self.document:
            raise ValueError("Batch operations need a collection and a document id")
        if self.type != OperationType.DELETE and self.data is None:
            raise ValueError(f"'{self.type.value}' operations require data")

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type": self.type.value,
            "collection": self.collection,
            "document": self.document,
        }
        if self.data is not None:
            data["data"] = self.data
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatchOperation":
        return cls(
            type=data.get("type"),
            collection=data.get("collection", ""),
            document=data.get("document", ""),
            data=data.get("data"),
        )
