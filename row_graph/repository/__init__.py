"""Repository layer - declarative data access classes."""

from __future__ import annotations

from row_graph.repository.base import Repository, sql_query, sql_update, transactional

__all__ = [
    "Repository",
    "sql_query",
    "sql_update",
    "transactional",
]
