"""Lazy-loading proxies and result interpretation."""

from __future__ import annotations

from row_graph.proxy.factory import EntityProxyFactory, default_factory, is_loaded
from row_graph.proxy.interpreter import interpret

__all__ = [
    "EntityProxyFactory",
    "default_factory",
    "interpret",
    "is_loaded",
]
