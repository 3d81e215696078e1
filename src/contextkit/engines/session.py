import asyncio
import logging
import math
from collections.abc import Sequence

from contextkit.exceptions import (
    ActivityNotStartedError,
    ContextNotFoundError,
    InvalidItemTypeError,
    NoActiveContextError,
    ValidationFailureError,
)
from contextkit.interfaces import ContextNode, ContextStore, TrackedActivity
from domain_models.constants import (
    MSG_ACTIVITY_NOT_STARTED,
    MSG_NO_ACTIVE_CONTEXT,
    MSG_NO_ACTIVITY,
)
from domain_models.payloads import (
    ActivityItemPayload,
    BinaryItemPayload,
    QuantityItemPayload,
    ScoreItemPayload,
)
from domain_models.types import ActivityOutcome, BinaryValueType, IdentifierPath

logger = logging.getLogger(__name__)


class ActivitySession:
    """
    Tracks the single active context and drives its activity.

    Idle until `begin_activity` sets an active path, back to Idle after
    `end_activity`. Only the path is held: every operation re-walks the store to
    find the node and its current activity. Operations are serialized with a
    lock so at most one is in flight per session.

    Saves triggered by begin/end run detached; their failures are logged and
    never reported to the caller.
    """

    def __init__(self, store: ContextStore) -> None:
        self.store = store
        self._active_path: IdentifierPath | None = None
        self._lock = asyncio.Lock()
        self._pending_saves: set[asyncio.Task[None]] = set()

    @property
    def active_path(self) -> IdentifierPath | None:
        """Path of the active context, or None while idle."""
        return self._active_path

    async def begin_activity(
        self, identifier_path: Sequence[str], as_new: bool = False
    ) -> ActivityOutcome:
        """
        Make the context at `identifier_path` active and start its activity.

        Args:
            identifier_path: Root-first path of the context.
            as_new: Always create a fresh activity, even if one exists.

        Returns:
            RESTARTED if the existing activity was started in place, STARTED otherwise.

        Raises:
            ContextNotFoundError: If the path does not resolve.
            StoreError: If the store lookup fails.
        """
        path = tuple(identifier_path)
        async with self._lock:
            context = await self.store.descendant(path)
            if context is None:
                msg = f"Could not find context for identifier path '{list(path)}'"
                raise ContextNotFoundError(msg)

            context.become_active()
            self._active_path = path

            activity = context.current_activity
            if not as_new and activity is not None:
                activity.start()
                outcome = ActivityOutcome.RESTARTED
                logger.info(f"Activity for context {list(path)} restarted")
            else:
                activity = context.create_new_activity()
                activity.start()
                outcome = ActivityOutcome.STARTED
                logger.info(f"New activity for context {list(path)} started")

            self._schedule_save()
            return outcome

    async def set_progress_range(self, start: float, end: float) -> None:
        """
        Add the range [start, end] to the activity's cumulative progress.

        Raises:
            NoActiveContextError: While idle, checked before the bounds.
            ValidationFailureError: If a bound is not finite or start > end.
        """
        async with self._lock:
            self.require_active_path()
            _require_finite(start, "start")
            _require_finite(end, "end")
            if start > end:
                msg = f"Progress range start ({start}) is greater than end ({end})."
                raise ValidationFailureError(msg)

            path, activity = await self._started_activity()
            activity.add_progress_range(start, end)
            logger.info(f"Progress (Range) set {list(path)}: {activity.progress:.0%}")

    async def set_progress(self, progress: float) -> None:
        """Overwrite the activity's progress. Finite values are passed through unclamped."""
        async with self._lock:
            self.require_active_path()
            _require_finite(progress, "progress")
            path, activity = await self._started_activity()
            activity.progress = progress
            logger.info(f"Progress set {list(path)}: {activity.progress}")

    async def set_binary_item(self, item: BinaryItemPayload) -> None:
        """
        Record a binary outcome.

        Raises:
            InvalidItemTypeError: If `item.type` is not a BinaryValueType ordinal.
        """
        async with self._lock:
            self.require_active_path()
            if item.type not in {value_type.value for value_type in BinaryValueType}:
                msg = f"Please provide a valid type (0, 1, or 2), got {item.type}"
                raise InvalidItemTypeError(msg)
            _, activity = await self._started_activity()
            self._place_item(activity, item)

    async def set_score_item(self, item: ScoreItemPayload) -> None:
        """Record a score outcome."""
        async with self._lock:
            _, activity = await self._started_activity()
            self._place_item(activity, item)

    async def set_quantity_item(self, item: QuantityItemPayload) -> None:
        """Record a quantity outcome."""
        async with self._lock:
            _, activity = await self._started_activity()
            self._place_item(activity, item)

    async def end_activity(self) -> None:
        """
        Stop the active context's activity and return to idle.

        The activity does not need to be started; it only has to exist.
        """
        async with self._lock:
            path = self.require_active_path()
            context = await self._active_context(path)
            activity = context.current_activity
            if activity is None:
                raise ActivityNotStartedError(MSG_NO_ACTIVITY)

            self._log_end_values(path, activity)

            activity.stop()
            context.resign_active()
            self._active_path = None

            self._schedule_save()

    async def drain(self) -> None:
        """Wait for detached saves scheduled so far."""
        if self._pending_saves:
            await asyncio.gather(*self._pending_saves, return_exceptions=True)

    def require_active_path(self) -> IdentifierPath:
        """Path of the active context; raises NoActiveContextError while idle."""
        if self._active_path is None:
            raise NoActiveContextError(MSG_NO_ACTIVE_CONTEXT)
        return self._active_path

    async def _active_context(self, path: IdentifierPath) -> ContextNode:
        context = await self.store.descendant(path)
        if context is None:
            msg = f"Could not find context for identifier path '{list(path)}'"
            raise ContextNotFoundError(msg)
        return context

    async def _started_activity(self) -> tuple[IdentifierPath, TrackedActivity]:
        """Resolve the active context and return its activity, which must be started."""
        path = self.require_active_path()
        context = await self._active_context(path)
        activity = context.current_activity
        if activity is None:
            raise ActivityNotStartedError(MSG_NO_ACTIVITY)
        if not activity.is_started:
            raise ActivityNotStartedError(MSG_ACTIVITY_NOT_STARTED)
        return path, activity

    def _place_item(
        self,
        activity: TrackedActivity,
        item: BinaryItemPayload | ScoreItemPayload | QuantityItemPayload,
    ) -> None:
        outcome = item.to_item()
        if item.is_primary_activity_item:
            activity.primary_activity_item = outcome
        else:
            activity.add_additional_activity_item(outcome)
        logger.info(f"{_item_label(item)} set => {item.title}: {outcome}")

    def _log_end_values(self, path: IdentifierPath, activity: TrackedActivity) -> None:
        logger.info("*** ACTIVITY END VALUES ***")
        for item in activity.additional_activity_items:
            logger.info(f"   => '{item.identifier}' with title '{item.title}': {item}")
        primary = activity.primary_activity_item
        if primary is not None:
            logger.info(f"   => '{primary.identifier}' with title '{primary.title}': {primary}")
        logger.info(f"   => progress: {activity.progress}")
        logger.info(f"   => {activity.duration} seconds elapsed.")
        logger.info(f"END: {list(path)}")

    def _schedule_save(self) -> None:
        task = asyncio.get_running_loop().create_task(self._save())
        self._pending_saves.add(task)
        task.add_done_callback(self._pending_saves.discard)

    async def _save(self) -> None:
        try:
            await self.store.save()
        except Exception:
            # Saves are detached: failures are only observable here.
            logger.exception("Failed to save context store")
            return
        logger.debug("Context store saved")


def _item_label(item: ActivityItemPayload) -> str:
    if isinstance(item, BinaryItemPayload):
        return "Binary Item"
    if isinstance(item, ScoreItemPayload):
        return "Score Item"
    return "Quantity Item"


def _require_finite(value: float, name: str) -> None:
    if not math.isfinite(value):
        msg = f"Please provide a finite {name} value, got {value}"
        raise ValidationFailureError(msg)
