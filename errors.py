# errors.py
"""
Exception types raised at the load and configuration boundaries.

Validation happens when a graph is loaded or a configuration value is set,
never inside the per-step integration loop.
"""
from typing import Optional


class MalformedGraphError(ValueError):
    """
    Raised when a graph violates its structural invariants: an edge
    references an unknown node, a node references an unknown layer, an
    identifier is duplicated, or a field has an invalid value.
    """

    def __init__(self, message: str, entity_kind: Optional[str] = None, entity_id=None):
        super().__init__(message)
        self.entity_kind = entity_kind
        self.entity_id = entity_id


class InvalidConfigError(ValueError):
    """Raised when a configuration value is non-finite or out of its domain."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field
