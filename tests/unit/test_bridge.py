import asyncio
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from contextkit.bridge import ContextBridge
from contextkit.exceptions import StoreError
from contextkit.store.memory import InMemoryContextStore
from domain_models.config import BridgeConfig
from domain_models.payloads import BridgeResponse
from tests.conftest import write_document
from tests.constants import (
    EMPTY_DOCUMENT,
    MALFORMED_DOCUMENT,
    SAMPLE_CONTEXT_COUNT,
    SAMPLE_URL_PREFIX,
    UNEXPECTED_ELEMENT_DOCUMENT,
)

CALCULUS = {"identifierPath": ["math", "calculus"], "title": "Calculus", "type": 2}


def _run(bridge: ContextBridge, *calls: tuple[str, list[Any]]) -> list[BridgeResponse]:
    """Run bridge calls in order on one event loop, waiting for detached saves at the end."""

    async def scenario() -> list[BridgeResponse]:
        responses = [await bridge.execute(action, args) for action, args in calls]
        await bridge.session.drain()
        return responses

    return asyncio.run(scenario())


def _materialized(bridge: ContextBridge) -> list[tuple[str, ...]]:
    assert isinstance(bridge.store, InMemoryContextStore)
    return [c.identifier_path for c in bridge.store.main_app_context.walk()]


def test_bridge_installs_resolver_as_delegate(bridge: ContextBridge) -> None:
    assert bridge.store.delegate is bridge.resolver
    assert "initContextsFromXml" in bridge.actions


def test_init_contexts(bridge: ContextBridge) -> None:
    (response,) = _run(bridge, ("initContextsFromXml", []))

    assert response.ok
    assert response.message == "ContextKit: Contexts have been initialized"
    assert len(bridge.index) == SAMPLE_CONTEXT_COUNT
    assert len(_materialized(bridge)) == SAMPLE_CONTEXT_COUNT


def test_init_contexts_with_url_prefix(bridge: ContextBridge) -> None:
    _run(bridge, ("initContextsFromXml", [SAMPLE_URL_PREFIX]))

    assert bridge.resolver.url_prefix == SAMPLE_URL_PREFIX
    assert isinstance(bridge.store, InMemoryContextStore)
    algebra = bridge.store.main_app_context.children["math"].children["algebra"]
    assert algebra.universal_link_url == f"{SAMPLE_URL_PREFIX}math/algebra"


def test_init_contexts_replaces_index(bridge: ContextBridge) -> None:
    _run(bridge, ("initContextsFromXml", []), ("addContext", [None, CALCULUS]))
    assert len(bridge.index) == SAMPLE_CONTEXT_COUNT + 1

    _run(bridge, ("initContextsFromXml", []))
    assert len(bridge.index) == SAMPLE_CONTEXT_COUNT


def test_init_contexts_missing_resource(tmp_path: Path) -> None:
    bridge = ContextBridge(
        InMemoryContextStore(), BridgeConfig(resource_name="contexts", resource_dir=tmp_path)
    )
    (response,) = _run(bridge, ("initContextsFromXml", []))
    assert not response.ok
    assert response.message.startswith("ContextKit Error: Resource not found")


@pytest.mark.parametrize(
    ("document", "message"),
    [
        (EMPTY_DOCUMENT, "ContextKit Error: No elements found"),
        (UNEXPECTED_ELEMENT_DOCUMENT, "ContextKit Error: Unexpected element name 'lesson'"),
    ],
)
def test_init_contexts_rejected_documents(
    tmp_path: Path, document: str, message: str
) -> None:
    write_document(tmp_path, document)
    config = BridgeConfig(resource_dir=tmp_path, resource_name="contexts")
    bridge = ContextBridge(InMemoryContextStore(), config)

    (response,) = _run(bridge, ("initContextsFromXml", []))

    assert response.message == message
    assert len(bridge.index) == 0


def test_init_contexts_malformed_document_carries_cause(tmp_path: Path) -> None:
    write_document(tmp_path, MALFORMED_DOCUMENT)
    config = BridgeConfig(resource_dir=tmp_path, resource_name="contexts")
    bridge = ContextBridge(InMemoryContextStore(), config)

    (response,) = _run(bridge, ("initContextsFromXml", []))

    assert not response.ok
    assert response.error is not None


def test_add_context(bridge: ContextBridge) -> None:
    responses = _run(
        bridge,
        ("initContextsFromXml", []),
        ("addContext", [None, CALCULUS]),
        ("addContext", [None, CALCULUS]),
    )

    assert responses[1].message == "ContextKit: Context '['math', 'calculus']' has been added"
    assert responses[2].ok
    assert len(bridge.index) == SAMPLE_CONTEXT_COUNT + 1
    assert ("math", "calculus") in _materialized(bridge)


def test_add_context_with_url_prefix(bridge: ContextBridge) -> None:
    _run(bridge, ("addContext", ["https://example.com/", {"identifierPath": ["art"], "title": "Art"}]))
    assert isinstance(bridge.store, InMemoryContextStore)
    assert bridge.store.main_app_context.children["art"].universal_link_url == "https://example.com/art"


@pytest.mark.parametrize(
    ("args", "message"),
    [
        ([None], "Please provide a context object as the second parameter"),
        ([None, "math"], "Please provide a context object as the second parameter"),
        ([None, {"identifierPath": [], "title": "Nothing"}], "Please provide a valid context object"),
        ([None, {"identifierPath": ["math", " "], "title": "Blank"}], "Please provide a valid context object"),
        ([None, {"title": "No path"}], "Please provide a valid context object"),
    ],
)
def test_add_context_validation(bridge: ContextBridge, args: list[Any], message: str) -> None:
    (response,) = _run(bridge, ("addContext", args))
    assert not response.ok
    assert message in response.message
    assert len(bridge.index) == 0


def test_remove_context(bridge: ContextBridge) -> None:
    responses = _run(
        bridge,
        ("initContextsFromXml", []),
        ("removeContext", [["math", "algebra"]]),
    )

    assert responses[1].message == "ContextKit: Context '['math', 'algebra']' has been removed"
    assert ("math", "algebra") not in _materialized(bridge)
    assert ("math", "algebra", "linear-equations") not in _materialized(bridge)


def test_remove_context_unknown(bridge: ContextBridge) -> None:
    (response,) = _run(bridge, ("removeContext", [["history"]]))
    assert response.message == (
        "ContextKit Error: Could not find context for identifier path '['history']'"
    )


def test_remove_contexts(bridge: ContextBridge) -> None:
    responses = _run(bridge, ("initContextsFromXml", []), ("removeContexts", []))

    assert responses[1].message == f"ContextKit: {SAMPLE_CONTEXT_COUNT} contexts have been removed"
    assert _materialized(bridge) == []


def test_remove_contexts_surfaces_save_failure(bridge_config: BridgeConfig) -> None:
    archive = MagicMock()
    archive.write_snapshot.side_effect = StoreError("Failed to write context snapshot: disk full")
    bridge = ContextBridge(InMemoryContextStore(archive=archive), bridge_config)

    (response,) = _run(bridge, ("removeContexts", []))

    assert response.message == "ContextKit Error: Failed to write context snapshot: disk full"


def test_activity_flow(bridge: ContextBridge) -> None:
    binary = {"identifier": "q1", "title": "Q1", "type": 0, "isCorrect": True}
    score = {"identifier": "quiz", "title": "Quiz", "score": 4, "maxScore": 5, "isPrimaryActivityItem": True}
    quantity = {"identifier": "hints", "title": "Hints", "quantity": 1}

    responses = _run(
        bridge,
        ("initContextsFromXml", []),
        ("beginActivity", [["math", "algebra"]]),
        ("setProgressRange", [0, 0.5]),
        ("setProgress", [0.6]),
        ("setBinaryItem", [binary]),
        ("setScoreItem", [score]),
        ("setQuantityItem", [quantity]),
        ("endActivity", []),
    )

    assert [r.message for r in responses[1:]] == [
        "ContextKit: New activity for context '['math', 'algebra']' started",
        "ContextKit: Progress range has been set",
        "ContextKit: Progress has been set",
        "ContextKit: Binary item has been set",
        "ContextKit: Score item has been set",
        "ContextKit: Quantity item has been set",
        "ContextKit: Activity is stopped",
    ]
    assert bridge.session.active_path is None


def test_begin_activity_restart_and_as_new(bridge: ContextBridge) -> None:
    responses = _run(
        bridge,
        ("initContextsFromXml", []),
        ("beginActivity", [["science"]]),
        ("beginActivity", [["science"], False]),
        ("beginActivity", [["science"], True]),
    )
    assert [r.message for r in responses[1:]] == [
        "ContextKit: New activity for context '['science']' started",
        "ContextKit: Activity for context '['science']' restarted",
        "ContextKit: New activity for context '['science']' started",
    ]


@pytest.mark.parametrize("args", [[], ["math"], [[]], [["math", 3]]])
def test_begin_activity_requires_identifier_path(bridge: ContextBridge, args: list[Any]) -> None:
    (response,) = _run(bridge, ("beginActivity", args))
    assert response.message == (
        "ContextKit Error: Please provide an identifier path array as the first parameter"
    )


def test_begin_activity_unknown_context(bridge: ContextBridge) -> None:
    (response,) = _run(bridge, ("beginActivity", [["history"]]))
    assert not response.ok
    assert "Could not find context" in response.message


def test_progress_without_activity(bridge: ContextBridge) -> None:
    (response,) = _run(bridge, ("setProgress", [0.5]))
    assert response.message == (
        "ContextKit Error: Could not get active context. "
        "Please call beginActivity(identifierPath) first"
    )


@pytest.mark.parametrize(
    ("action", "args"),
    [
        ("setProgress", []),
        ("setProgressRange", [0.8, 0.2]),
        ("setProgressRange", [float("nan"), float("nan")]),
        ("setBinaryItem", []),
        ("setScoreItem", [{"identifier": "quiz"}]),
    ],
)
def test_active_context_is_checked_before_arguments(
    bridge: ContextBridge, action: str, args: list[Any]
) -> None:
    (response,) = _run(bridge, (action, args))
    assert response.message.startswith("ContextKit Error: Could not get active context")


@pytest.mark.parametrize(
    ("action", "args", "message"),
    [
        ("setProgress", ["half"], "Please provide a progress value as the first parameter"),
        ("setProgress", [True], "Please provide a progress value as the first parameter"),
        ("setProgressRange", [0.1], "Please provide an end value as the second parameter"),
        ("setProgressRange", [None, 0.5], "Please provide a start value as the first parameter"),
        ("setProgressRange", [0.8, 0.2], "greater than end"),
        ("setBinaryItem", [], "Please provide a binary item object as the first parameter"),
        ("setScoreItem", [{"identifier": "quiz"}], "Please provide a valid score item object"),
        ("setQuantityItem", [[1]], "Please provide a quantity item object"),
    ],
)
def test_argument_validation(
    bridge: ContextBridge, action: str, args: list[Any], message: str
) -> None:
    responses = _run(
        bridge,
        ("initContextsFromXml", []),
        ("beginActivity", [["math", "algebra"]]),
        (action, args),
    )
    assert not responses[2].ok
    assert message in responses[2].message


@pytest.mark.parametrize(
    ("action", "args"),
    [
        ("setProgress", [float("inf")]),
        ("setProgress", [float("-inf")]),
        ("setProgress", [float("nan")]),
        ("setProgressRange", [float("nan"), float("nan")]),
        ("setProgressRange", [0.0, float("inf")]),
    ],
)
def test_non_finite_progress_is_rejected(
    bridge: ContextBridge, action: str, args: list[Any]
) -> None:
    responses = _run(
        bridge,
        ("initContextsFromXml", []),
        ("beginActivity", [["math", "algebra"]]),
        ("setProgressRange", [0.0, 0.25]),
        (action, args),
    )

    assert not responses[3].ok
    assert responses[3].message.startswith("ContextKit Error: Please provide")
    assert isinstance(bridge.store, InMemoryContextStore)
    activity = bridge.store.main_app_context.children["math"].children["algebra"].current_activity
    assert activity is not None
    assert activity.progress == 0.25


def test_binary_item_with_invalid_type(bridge: ContextBridge) -> None:
    binary = {"identifier": "q1", "title": "Q1", "type": 5, "isCorrect": True}
    responses = _run(
        bridge,
        ("initContextsFromXml", []),
        ("beginActivity", [["math"]]),
        ("setBinaryItem", [binary]),
    )
    assert responses[2].message == "ContextKit Error: Please provide a valid type (0, 1, or 2), got 5"


def test_unknown_action(bridge: ContextBridge) -> None:
    (response,) = _run(bridge, ("fly", []))
    assert response.message == "ContextKit Error: Unknown action 'fly'"


def test_call_passes_positional_arguments(bridge: ContextBridge) -> None:
    async def scenario() -> BridgeResponse:
        await bridge.call("initContextsFromXml")
        response = await bridge.call("beginActivity", ["math"], True)
        await bridge.session.drain()
        return response

    assert asyncio.run(scenario()).message == (
        "ContextKit: New activity for context '['math']' started"
    )
