"""
ContextKit: hierarchical learning-context tracking.
This is the root package containing the parser, index, engines, store and bridge.
"""

from contextkit.bridge import ContextBridge
from contextkit.engines.resolver import PathResolver
from contextkit.engines.session import ActivitySession
from contextkit.index.element_index import ElementIndex
from contextkit.parsing.context_parser import ContextParser
from contextkit.store.archive import SqlContextArchive
from contextkit.store.memory import InMemoryContextStore

__all__ = [
    "ActivitySession",
    "ContextBridge",
    "ContextParser",
    "ElementIndex",
    "InMemoryContextStore",
    "PathResolver",
    "SqlContextArchive",
]
