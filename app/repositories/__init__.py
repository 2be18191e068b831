"""
app/repositories package marker.
"""

from app.repositories.entity_resolver import (
    EntityResolver,
    MemoizingEntityResolver,
    SqlEntityResolver,
)

__all__ = [
    "EntityResolver",
    "MemoizingEntityResolver",
    "SqlEntityResolver",
]
