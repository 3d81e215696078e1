from collections.abc import Iterator
from pathlib import Path

import pytest

from contextkit.bridge import ContextBridge
from contextkit.engines.resolver import PathResolver
from contextkit.index.element_index import ElementIndex
from contextkit.parsing.context_parser import ContextParser, ordered_elements
from contextkit.store.memory import InMemoryContextStore
from domain_models.config import BridgeConfig
from domain_models.manifest import ParsedElement
from domain_models.types import ContextTopic, ContextType
from tests.constants import SAMPLE_DOCUMENT

# Shared factories so every test builds elements and documents the same way.


def make_element(
    *identifier_path: str,
    title: str | None = None,
    type: ContextType = ContextType.NONE,
    topic: ContextTopic | None = None,
    display_order: int = 0,
) -> ParsedElement:
    """Factory for ParsedElements with consistent defaults."""
    return ParsedElement(
        title=title if title is not None else identifier_path[-1].title(),
        type=type,
        topic=topic,
        identifier=identifier_path[-1],
        display_order=display_order,
        identifier_path=tuple(identifier_path),
    )


def write_document(directory: Path, content: str, name: str = "contexts") -> Path:
    """Write a context document named `name` into `directory`."""
    path = directory / f"{name}.xml"
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def sample_elements() -> list[ParsedElement]:
    return ordered_elements(ContextParser().parse_string(SAMPLE_DOCUMENT))


@pytest.fixture
def sample_index(sample_elements: list[ParsedElement]) -> ElementIndex:
    return ElementIndex(sample_elements)


@pytest.fixture
def sample_store(sample_index: ElementIndex) -> InMemoryContextStore:
    """Store materializing nodes from the sample document."""
    return InMemoryContextStore(delegate=PathResolver(sample_index))


@pytest.fixture
def document_dir(tmp_path: Path) -> Path:
    write_document(tmp_path, SAMPLE_DOCUMENT)
    return tmp_path


@pytest.fixture
def bridge_config(document_dir: Path) -> BridgeConfig:
    return BridgeConfig(resource_name="contexts", resource_dir=document_dir, url_prefix=None)


@pytest.fixture
def bridge(bridge_config: BridgeConfig) -> Iterator[ContextBridge]:
    yield ContextBridge(InMemoryContextStore(), bridge_config)
