from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

from domain_models.activity import BinaryItem, QuantityItem, ScoreItem
from domain_models.manifest import ContextDescriptor
from domain_models.types import ActivityState, IdentifierPath

ActivityItemType = BinaryItem | ScoreItem | QuantityItem


@runtime_checkable
class NodeMaterializer(Protocol):
    """
    Delegate a store asks to describe a node it has not materialized yet.
    """

    def create_node(
        self, identifier: str, parent_path: Sequence[str]
    ) -> ContextDescriptor | None:
        """
        Describe the node `identifier` below `parent_path`.

        Args:
            identifier: Identifier of the node to create.
            parent_path: Root-first path of the parent node (empty for top-level nodes).

        Returns:
            A descriptor, or None if no such node is known.
        """
        ...


@runtime_checkable
class TrackedActivity(Protocol):
    """
    Live activity object owned by a store node.
    """

    @property
    def state(self) -> ActivityState: ...

    @property
    def is_started(self) -> bool: ...

    @property
    def progress(self) -> float: ...

    @progress.setter
    def progress(self, value: float) -> None: ...

    @property
    def duration(self) -> float:
        """Seconds elapsed while started."""
        ...

    @property
    def primary_activity_item(self) -> ActivityItemType | None: ...

    @primary_activity_item.setter
    def primary_activity_item(self, item: ActivityItemType | None) -> None: ...

    @property
    def additional_activity_items(self) -> list[ActivityItemType]: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def add_progress_range(self, start: float, end: float) -> None: ...

    def add_additional_activity_item(self, item: ActivityItemType) -> None: ...


@runtime_checkable
class ContextNode(Protocol):
    """
    Materialized tree node owned by a store.
    """

    identifier: str
    title: str
    identifier_path: IdentifierPath
    date_created: datetime

    @property
    def is_active(self) -> bool: ...

    @property
    def current_activity(self) -> TrackedActivity | None: ...

    def become_active(self) -> None: ...

    def resign_active(self) -> None: ...

    def create_new_activity(self) -> TrackedActivity: ...


@runtime_checkable
class ContextStore(Protocol):
    """
    Protocol for tracking stores holding the materialized context tree.
    Nodes are materialized lazily, top-down, through `delegate`.
    """

    delegate: NodeMaterializer | None

    async def descendant(self, identifier_path: Sequence[str]) -> ContextNode | None:
        """Locate (materializing if needed) the node at `identifier_path`."""
        ...

    async def contexts_matching_identifier_path(
        self, identifier_path: Sequence[str]
    ) -> list[ContextNode]:
        """Materialize and return every node along `identifier_path`."""
        ...

    async def contexts_matching(
        self, predicate: Callable[[ContextNode], bool]
    ) -> list[ContextNode]:
        """Return materialized nodes satisfying `predicate`."""
        ...

    async def remove(self, context: ContextNode) -> None:
        """Remove a node and its subtree."""
        ...

    async def save(self) -> None:
        """Persist pending changes."""
        ...
