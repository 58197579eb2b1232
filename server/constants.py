"""Centralized constants shared by configuration, services and routes."""

from typing import FrozenSet

# =============================================================================
# SERVICE IDENTITY
# =============================================================================

SERVICE_NAME = "Mussikon Query Service"
SERVICE_VERSION = "1.0.0"

# =============================================================================
# FIRESTORE LIMITS
# =============================================================================

# Maximum writes in a single Firestore WriteBatch
FIRESTORE_MAX_BATCH_SIZE = 500

# Maximum values in an "in" filter
FIRESTORE_MAX_IN_VALUES = 30

# =============================================================================
# CACHE NAMESPACES
# =============================================================================

DEFAULT_CACHE_PREFIX = "mussikon:"
DEFAULT_QUERY_CACHE_PREFIX = "firestore:"

# =============================================================================
# LIST ENDPOINT QUERY PARAMETERS
# =============================================================================

# Query-string names consumed by pagination/sorting; everything else is a filter
RESERVED_QUERY_PARAMS: FrozenSet[str] = frozenset([
    'page',
    'limit',
    'pageSize',
    'sortBy',
    'sortOrder',
    'search',
    'fields',
])
