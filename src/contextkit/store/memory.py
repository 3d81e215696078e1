import asyncio
import logging
import time
from collections.abc import Callable, Iterator, Sequence
from datetime import UTC, datetime

from contextkit.interfaces import ActivityItemType, ContextNode, NodeMaterializer
from contextkit.store.archive import SqlContextArchive
from domain_models.manifest import ActivitySnapshot, ContextDescriptor, ContextSnapshot
from domain_models.types import ActivityState, ContextTopic, ContextType, IdentifierPath

logger = logging.getLogger(__name__)


class StoreActivity:
    """
    Timed, progress-tracked activity attached to a StoreContext.

    Progress ranges accumulate as a union of intervals clipped to [0, 1], so
    overlapping ranges are only counted once. Assigning `progress` directly
    overrides the accumulated value.
    """

    def __init__(self) -> None:
        self._state = ActivityState.CREATED
        self._ranges: list[tuple[float, float]] = []
        self._progress = 0.0
        self._elapsed = 0.0
        self._started_at: float | None = None
        self._primary_item: ActivityItemType | None = None
        self._additional_items: list[ActivityItemType] = []

    @classmethod
    def from_snapshot(cls, snapshot: ActivitySnapshot) -> "StoreActivity":
        """Rebuild an archived activity. A started activity comes back stopped."""
        activity = cls()
        activity._state = (
            ActivityState.STOPPED if snapshot.state == ActivityState.STARTED else snapshot.state
        )
        activity._ranges = list(snapshot.progress_ranges)
        activity._progress = snapshot.progress
        activity._elapsed = snapshot.duration
        activity._primary_item = snapshot.primary_item
        activity._additional_items = list(snapshot.additional_items)
        return activity

    @property
    def state(self) -> ActivityState:
        return self._state

    @property
    def is_started(self) -> bool:
        return self._state == ActivityState.STARTED

    @property
    def progress(self) -> float:
        return self._progress

    @progress.setter
    def progress(self, value: float) -> None:
        self._progress = value

    @property
    def duration(self) -> float:
        if self._started_at is None:
            return self._elapsed
        return self._elapsed + (time.monotonic() - self._started_at)

    @property
    def primary_activity_item(self) -> ActivityItemType | None:
        return self._primary_item

    @primary_activity_item.setter
    def primary_activity_item(self, item: ActivityItemType | None) -> None:
        self._primary_item = item

    @property
    def additional_activity_items(self) -> list[ActivityItemType]:
        return list(self._additional_items)

    def start(self) -> None:
        if self._started_at is None:
            self._started_at = time.monotonic()
        self._state = ActivityState.STARTED

    def stop(self) -> None:
        if self._started_at is not None:
            self._elapsed += time.monotonic() - self._started_at
            self._started_at = None
        self._state = ActivityState.STOPPED

    def add_progress_range(self, start: float, end: float) -> None:
        start, end = max(0.0, start), min(1.0, end)
        if end <= start:
            return
        self._ranges = _merge_ranges([*self._ranges, (start, end)])
        self._progress = sum(high - low for low, high in self._ranges)

    def add_additional_activity_item(self, item: ActivityItemType) -> None:
        self._additional_items.append(item)

    def snapshot(self) -> ActivitySnapshot:
        return ActivitySnapshot(
            state=self._state,
            progress=self._progress,
            progress_ranges=list(self._ranges),
            duration=self.duration,
            primary_item=self._primary_item,
            additional_items=list(self._additional_items),
        )


def _merge_ranges(ranges: list[tuple[float, float]]) -> list[tuple[float, float]]:
    merged: list[tuple[float, float]] = []
    for low, high in sorted(ranges):
        if merged and low <= merged[-1][1]:
            merged[-1] = (merged[-1][0], max(merged[-1][1], high))
        else:
            merged.append((low, high))
    return merged


class StoreContext:
    """A materialized context node of the in-memory store."""

    def __init__(
        self,
        identifier: str,
        title: str,
        identifier_path: IdentifierPath,
        type: ContextType = ContextType.NONE,
        topic: ContextTopic | None = None,
        display_order: int = 0,
        universal_link_url: str | None = None,
    ) -> None:
        self.identifier = identifier
        self.title = title
        self.identifier_path = identifier_path
        self.type = type
        self.topic = topic
        self.display_order = display_order
        self.universal_link_url = universal_link_url
        self.date_created = datetime.now(tz=UTC)
        self.parent: StoreContext | None = None
        self.children: dict[str, StoreContext] = {}
        self._is_active = False
        self._current_activity: StoreActivity | None = None

    @classmethod
    def from_descriptor(cls, descriptor: ContextDescriptor) -> "StoreContext":
        return cls(
            identifier=descriptor.identifier,
            title=descriptor.title,
            identifier_path=descriptor.identifier_path,
            type=descriptor.type,
            topic=descriptor.topic,
            display_order=descriptor.display_order,
            universal_link_url=descriptor.universal_link_url,
        )

    @classmethod
    def from_snapshot(cls, snapshot: ContextSnapshot) -> "StoreContext":
        context = cls(
            identifier=snapshot.identifier_path[-1],
            title=snapshot.title,
            identifier_path=snapshot.identifier_path,
            type=snapshot.type,
            topic=snapshot.topic,
            display_order=snapshot.display_order,
            universal_link_url=snapshot.universal_link_url,
        )
        context.date_created = snapshot.date_created
        if snapshot.activity is not None:
            context._current_activity = StoreActivity.from_snapshot(snapshot.activity)
        return context

    @property
    def is_active(self) -> bool:
        return self._is_active

    @property
    def current_activity(self) -> StoreActivity | None:
        return self._current_activity

    def become_active(self) -> None:
        self._is_active = True

    def resign_active(self) -> None:
        self._is_active = False

    def create_new_activity(self) -> StoreActivity:
        """Replace the current activity with a fresh one, stopping the old one."""
        if self._current_activity is not None and self._current_activity.is_started:
            self._current_activity.stop()
        self._current_activity = StoreActivity()
        return self._current_activity

    def add_child(self, child: "StoreContext") -> None:
        child.parent = self
        self.children[child.identifier] = child

    def walk(self) -> Iterator["StoreContext"]:
        """Yield every node below this one, depth-first, parents before children."""
        for child in sorted(self.children.values(), key=lambda c: (c.display_order, c.identifier)):
            yield child
            yield from child.walk()

    def snapshot(self) -> ContextSnapshot:
        return ContextSnapshot(
            identifier_path=self.identifier_path,
            title=self.title,
            type=self.type,
            topic=self.topic,
            display_order=self.display_order,
            universal_link_url=self.universal_link_url,
            is_active=self._is_active,
            date_created=self.date_created,
            activity=self._current_activity.snapshot() if self._current_activity else None,
        )

    def __repr__(self) -> str:
        return f"StoreContext({list(self.identifier_path)!r}, title={self.title!r})"


class InMemoryContextStore:
    """
    Reference tracking store keeping the context tree in memory.

    Nodes are materialized lazily: when a lookup reaches a child that does not
    exist yet, the store asks its `delegate` to describe it and builds the node
    from the returned descriptor. Saving writes a snapshot of every materialized
    node to an optional SqlContextArchive.
    """

    def __init__(
        self,
        delegate: NodeMaterializer | None = None,
        archive: SqlContextArchive | None = None,
    ) -> None:
        self.delegate = delegate
        self.archive = archive
        self.main_app_context = StoreContext(identifier="", title="", identifier_path=())
        self._save_lock = asyncio.Lock()

    async def descendant(self, identifier_path: Sequence[str]) -> StoreContext | None:
        """Locate the node at `identifier_path`, materializing missing nodes on the way."""
        nodes = self._walk(identifier_path)
        if not identifier_path or len(nodes) != len(identifier_path):
            return None
        return nodes[-1]

    async def contexts_matching_identifier_path(
        self, identifier_path: Sequence[str]
    ) -> list[StoreContext]:
        """Materialize and return the nodes along `identifier_path`, root first."""
        return self._walk(identifier_path)

    async def contexts_matching(
        self, predicate: Callable[[ContextNode], bool]
    ) -> list[StoreContext]:
        return [context for context in self.main_app_context.walk() if predicate(context)]

    async def remove(self, context: ContextNode) -> None:
        if not isinstance(context, StoreContext) or context.parent is None:
            logger.warning(f"Ignoring removal of detached context {context!r}")
            return
        context.parent.children.pop(context.identifier, None)
        context.parent = None
        logger.info(f"Removed context {list(context.identifier_path)}")

    async def save(self) -> None:
        """Persist a snapshot of the materialized tree, if an archive is configured."""
        if self.archive is None:
            return
        # Snapshots are taken and written one at a time so the newest one lands last.
        async with self._save_lock:
            snapshot = self.snapshot()
            await asyncio.to_thread(self.archive.write_snapshot, snapshot)
        logger.debug(f"Saved {len(snapshot)} contexts")

    async def restore(self) -> int:
        """
        Rebuild the materialized tree from the archive's last snapshot.

        Restored nodes are inactive. Nodes that already exist are kept as they
        are, and archived nodes whose parent is missing are skipped.

        Returns:
            The number of nodes restored.

        Raises:
            StoreError: If the archive cannot be read.
        """
        if self.archive is None:
            return 0
        snapshots = await asyncio.to_thread(self.archive.load_snapshot)

        restored = 0
        for snapshot in snapshots:
            *parent_path, identifier = snapshot.identifier_path
            parent = self._existing(parent_path)
            if parent is None:
                path = list(snapshot.identifier_path)
                logger.warning(f"Skipping archived context {path}: parent missing")
                continue
            if identifier in parent.children:
                continue
            parent.add_child(StoreContext.from_snapshot(snapshot))
            restored += 1

        logger.info(f"Restored {restored} contexts from archive")
        return restored

    def snapshot(self) -> list[ContextSnapshot]:
        return [context.snapshot() for context in self.main_app_context.walk()]

    def _existing(self, identifier_path: Sequence[str]) -> StoreContext | None:
        """Node at `identifier_path` without materializing anything."""
        current = self.main_app_context
        for identifier in identifier_path:
            child = current.children.get(identifier)
            if child is None:
                return None
            current = child
        return current

    def _walk(self, identifier_path: Sequence[str]) -> list[StoreContext]:
        """
        Walk from the root, one segment at a time.

        Returns the nodes found along the path. The walk stops at the first
        segment that can neither be found nor materialized.
        """
        nodes: list[StoreContext] = []
        current = self.main_app_context
        for depth, identifier in enumerate(identifier_path):
            child = current.children.get(identifier)
            if child is None:
                child = self._materialize(identifier, tuple(identifier_path[:depth]))
                if child is None:
                    break
                current.add_child(child)
            nodes.append(child)
            current = child
        return nodes

    def _materialize(self, identifier: str, parent_path: IdentifierPath) -> StoreContext | None:
        if self.delegate is None:
            return None
        descriptor = self.delegate.create_node(identifier, parent_path)
        if descriptor is None:
            return None
        return StoreContext.from_descriptor(descriptor)
