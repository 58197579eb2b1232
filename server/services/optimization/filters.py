"""Filter-map translation into native document-store predicates.

Supported filter shapes (all fields ANDed, no OR or nested groups):
- scalar:  {"genre": "jazz"}                 -> genre == "jazz"
- list:    {"status": ["pending", "active"]} -> status in [...]
- range:   {"budget": {"gte": 100, "lte": 500}}
           -> budget >= 100 AND budget <= 500

Range bounds are emitted in the fixed order gte, lte, gt, lt.
"""

import json
from typing import Any, Dict, List, Mapping, Optional

from constants import FIRESTORE_MAX_IN_VALUES as MAX_IN_VALUES
from models.query import Predicate, QueryOptions
from .exceptions import QueryTranslationError

# Range keys in emission order
RANGE_OPERATORS: Dict[str, str] = {
    "gte": ">=",
    "lte": "<=",
    "gt": ">",
    "lt": "<",
}


def translate_filter(field: str, value: Any) -> List[Predicate]:
    """Translate one field's filter value into one or more predicates."""
    if not field:
        raise QueryTranslationError(field, "Filter field name must not be empty")

    if isinstance(value, (list, tuple)):
        if not value:
            raise QueryTranslationError(field, "Membership filter needs at least one value")
        if len(value) > MAX_IN_VALUES:
            raise QueryTranslationError(
                field, f"Membership filter supports at most {MAX_IN_VALUES} values")
        return [Predicate(field, "in", list(value))]

    if isinstance(value, Mapping):
        unknown = set(value) - set(RANGE_OPERATORS)
        if unknown:
            raise QueryTranslationError(
                field, f"Unknown range bound(s): {', '.join(sorted(map(str, unknown)))}")
        predicates = [
            Predicate(field, op, value[bound])
            for bound, op in RANGE_OPERATORS.items()
            if value.get(bound) is not None
        ]
        if not predicates:
            raise QueryTranslationError(field, "Range filter has no bounds")
        return predicates

    return [Predicate(field, "==", value)]


def translate_filters(filters: Optional[Mapping[str, Any]]) -> List[Predicate]:
    """Translate a whole filter map; predicates keep the map's field order."""
    predicates: List[Predicate] = []
    for field, value in (filters or {}).items():
        predicates.extend(translate_filter(field, value))
    return predicates


def canonical_json(value: Any) -> str:
    """Deterministic compact JSON (sorted keys) used for cache keys."""
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def generate_cache_key(collection: str, filters: Optional[Mapping[str, Any]],
                       options: QueryOptions) -> str:
    """Derive a cache key from (collection, filters, options).

    Identical inputs always produce identical keys regardless of dict
    insertion order. An explicit options.cache_key bypasses derivation.
    """
    if options.cache_key:
        return options.cache_key
    return f"{collection}:{canonical_json(dict(filters or {}))}:{canonical_json(options.to_dict())}"
