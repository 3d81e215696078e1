import logging
import math
from collections.abc import Awaitable, Callable, Sequence
from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from contextkit.engines.resolver import PathResolver
from contextkit.engines.session import ActivitySession
from contextkit.exceptions import (
    ContextKitError,
    ContextNotFoundError,
    ParseFailureError,
    StoreError,
    ValidationFailureError,
)
from contextkit.index.element_index import ElementIndex
from contextkit.interfaces import ContextNode, ContextStore
from contextkit.parsing.context_parser import ContextParser, ordered_elements
from domain_models.config import BridgeConfig
from domain_models.constants import MSG_NO_ELEMENTS
from domain_models.payloads import (
    BinaryItemPayload,
    BridgeResponse,
    ContextPayload,
    QuantityItemPayload,
    ScoreItemPayload,
)
from domain_models.types import ActivityOutcome

logger = logging.getLogger(__name__)

PayloadT = TypeVar("PayloadT", bound=BaseModel)
ActionHandler = Callable[[Sequence[Any]], Awaitable[str]]


def _argument(args: Sequence[Any], index: int) -> Any:
    """Positional argument at `index`, or None when the caller omitted it."""
    return args[index] if index < len(args) else None


def _identifier_path_argument(args: Sequence[Any], index: int, position: str) -> list[str]:
    value = _argument(args, index)
    if (
        not isinstance(value, list)
        or not value
        or not all(isinstance(segment, str) and segment for segment in value)
    ):
        msg = f"Please provide an identifier path array as the {position} parameter"
        raise ValidationFailureError(msg)
    return value


def _number_argument(args: Sequence[Any], index: int, message: str) -> float:
    value = _argument(args, index)
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValidationFailureError(message)
    if not math.isfinite(value):
        raise ValidationFailureError(f"{message}, got {value}")
    return float(value)


def _payload_argument(
    args: Sequence[Any], index: int, model: type[PayloadT], name: str, position: str
) -> PayloadT:
    value = _argument(args, index)
    if not isinstance(value, dict):
        msg = f"Please provide a {name} object as the {position} parameter"
        raise ValidationFailureError(msg)
    try:
        return model.model_validate(value)
    except ValidationError as e:
        msg = f"Please provide a valid {name} object as the {position} parameter"
        raise ValidationFailureError(msg) from e


def _url_prefix_argument(args: Sequence[Any]) -> str | None:
    value = _argument(args, 0)
    return value if isinstance(value, str) else None


class ContextBridge:
    """
    Adapter between a calling application and the context core.

    Every call takes positional arguments as decoded from the wire and yields
    exactly one BridgeResponse. Owns the element index, the resolver (installed
    as the store's materialization delegate) and the activity session.
    """

    def __init__(self, store: ContextStore, config: BridgeConfig | None = None) -> None:
        self.config = config or BridgeConfig.default()
        self.store = store
        self.index = ElementIndex()
        self.resolver = PathResolver(self.index, url_prefix=self.config.url_prefix)
        self.session = ActivitySession(store)
        self.store.delegate = self.resolver

        self._actions: dict[str, ActionHandler] = {
            "initContextsFromXml": self._init_contexts_from_xml,
            "addContext": self._add_context,
            "removeContexts": self._remove_contexts,
            "removeContext": self._remove_context,
            "beginActivity": self._begin_activity,
            "endActivity": self._end_activity,
            "setProgressRange": self._set_progress_range,
            "setProgress": self._set_progress,
            "setBinaryItem": self._set_binary_item,
            "setScoreItem": self._set_score_item,
            "setQuantityItem": self._set_quantity_item,
        }

    @property
    def actions(self) -> list[str]:
        return list(self._actions)

    async def execute(self, action: str, args: Sequence[Any] = ()) -> BridgeResponse:
        """
        Run a wire action.

        ContextKit errors become error responses carrying the message and, when
        the error wraps another one, its description.
        """
        try:
            handler = self._actions.get(action)
            if handler is None:
                msg = f"Unknown action '{action}'"
                raise ValidationFailureError(msg)
            message = await handler(args)
        except ContextKitError as e:
            cause = str(e.__cause__) if e.__cause__ is not None else None
            logger.error(f"{action} failed: {e}")
            return BridgeResponse.failure(str(e), cause)
        return BridgeResponse.success(message)

    async def call(self, action: str, *args: Any) -> BridgeResponse:
        """Convenience wrapper around `execute` taking arguments positionally."""
        return await self.execute(action, list(args))

    def _apply_url_prefix(self, args: Sequence[Any]) -> None:
        url_prefix = _url_prefix_argument(args)
        if url_prefix is not None:
            self.resolver.url_prefix = url_prefix

    async def _materialize(self, identifier_path: Sequence[str]) -> None:
        try:
            await self.store.contexts_matching_identifier_path(identifier_path)
        except StoreError as e:
            msg = "Could not create contexts"
            raise StoreError(msg) from e

    async def _init_contexts_from_xml(self, args: Sequence[Any]) -> str:
        self._apply_url_prefix(args)

        parser = ContextParser()
        elements = parser.parse_resource(self.config.resource_name, self.config.resource_dir)
        if not elements:
            raise ParseFailureError(MSG_NO_ELEMENTS)

        ordered = ordered_elements(elements)
        self.index.replace(ordered)

        for element in ordered:
            await self._materialize(element.identifier_path)
        return "Contexts have been initialized"

    async def _add_context(self, args: Sequence[Any]) -> str:
        self._apply_url_prefix(args)
        payload = _payload_argument(args, 1, ContextPayload, "context", "second")
        try:
            element = payload.to_element()
        except ValidationError as e:
            msg = "Please provide a valid context object as the second parameter"
            raise ValidationFailureError(msg) from e

        if not self.index.insert(element):
            logger.info(f"Context {list(element.identifier_path)} already known")

        await self._materialize(element.identifier_path)
        return f"Context '{list(element.identifier_path)}' has been added"

    async def _remove_contexts(self, args: Sequence[Any]) -> str:
        now = datetime.now(tz=UTC)

        def created_before_now(context: ContextNode) -> bool:
            return context.date_created < now

        contexts = await self.store.contexts_matching(created_before_now)
        for context in contexts:
            await self.store.remove(context)
        await self.store.save()
        return f"{len(contexts)} contexts have been removed"

    async def _remove_context(self, args: Sequence[Any]) -> str:
        identifier_path = _identifier_path_argument(args, 0, "first")
        context = await self.store.descendant(identifier_path)
        if context is None:
            msg = f"Could not find context for identifier path '{identifier_path}'"
            raise ContextNotFoundError(msg)

        await self.store.remove(context)
        await self.store.save()
        return f"Context '{identifier_path}' has been removed"

    async def _begin_activity(self, args: Sequence[Any]) -> str:
        identifier_path = _identifier_path_argument(args, 0, "first")
        as_new = _argument(args, 1) is True

        outcome = await self.session.begin_activity(identifier_path, as_new=as_new)
        if outcome == ActivityOutcome.RESTARTED:
            return f"Activity for context '{identifier_path}' restarted"
        return f"New activity for context '{identifier_path}' started"

    async def _end_activity(self, args: Sequence[Any]) -> str:
        await self.session.end_activity()
        return "Activity is stopped"

    async def _set_progress_range(self, args: Sequence[Any]) -> str:
        self.session.require_active_path()
        start = _number_argument(args, 0, "Please provide a start value as the first parameter")
        end = _number_argument(args, 1, "Please provide an end value as the second parameter")
        await self.session.set_progress_range(start, end)
        return "Progress range has been set"

    async def _set_progress(self, args: Sequence[Any]) -> str:
        self.session.require_active_path()
        progress = _number_argument(
            args, 0, "Please provide a progress value as the first parameter"
        )
        await self.session.set_progress(progress)
        return "Progress has been set"

    async def _set_binary_item(self, args: Sequence[Any]) -> str:
        self.session.require_active_path()
        item = _payload_argument(args, 0, BinaryItemPayload, "binary item", "first")
        await self.session.set_binary_item(item)
        return "Binary item has been set"

    async def _set_score_item(self, args: Sequence[Any]) -> str:
        self.session.require_active_path()
        item = _payload_argument(args, 0, ScoreItemPayload, "score item", "first")
        await self.session.set_score_item(item)
        return "Score item has been set"

    async def _set_quantity_item(self, args: Sequence[Any]) -> str:
        self.session.require_active_path()
        item = _payload_argument(args, 0, QuantityItemPayload, "quantity item", "first")
        await self.session.set_quantity_item(item)
        return "Quantity item has been set"
