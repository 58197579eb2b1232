"""Query optimizer exception hierarchy.

These never cross the optimizer's public boundary: optimized_query() and
batch_operations() convert them into failure result shapes.
"""


class OptimizationError(Exception):
    """Base exception for all optimizer errors."""


class QueryTranslationError(OptimizationError):
    """A filter map could not be translated into native predicates."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"[{field}] {message}")


class BatchCommitError(OptimizationError):
    """A single batch failed to commit."""

    def __init__(self, batch_index: int, cause: Exception):
        self.batch_index = batch_index
        self.cause = cause
        super().__init__(f"Batch {batch_index} failed: {cause}")
