import io
import logging
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import IO

from lxml import etree
from pydantic import ValidationError

from contextkit.exceptions import (
    ParseFailureError,
    ResourceNotFoundError,
    UnexpectedElementNameError,
)
from contextkit.utils.io import resolve_resource
from domain_models.constants import (
    ATTR_DISPLAY_ORDER,
    ATTR_IDENTIFIER_PATH,
    ATTR_TITLE,
    ATTR_TOPIC,
    ATTR_TYPE,
    CONTEXT_ELEMENT_NAME,
    DEFAULT_DISPLAY_ORDER,
    PATH_SEPARATOR,
    ROOT_ELEMENT_NAME,
)
from domain_models.manifest import ParsedElement
from domain_models.types import parse_context_topic, parse_context_type

logger = logging.getLogger(__name__)

XmlSource = str | Path | IO[bytes]


def split_identifier_path(value: str | None) -> tuple[str, ...]:
    """
    Split a comma-separated identifier path, trimming each segment.
    Empty segments are dropped, so "" and " , " both yield an empty path.
    Dropping a blank segment from an otherwise non-empty path is logged.
    """
    if not value:
        return ()
    segments = [segment.strip() for segment in value.split(PATH_SEPARATOR)]
    path = tuple(segment for segment in segments if segment)
    if path and len(path) != len(segments):
        logger.warning(f"Blank segments dropped from identifier path '{value}' => {list(path)}")
    return path


def _parse_int(value: str | None) -> int | None:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


class ContextParser:
    """
    Streams a context document and produces a deduplicated set of ParsedElements.

    The document is a <root> wrapper containing <context> elements:

        <root>
            <context identifierPath="math" title="Math" type="1" topic="math"/>
            <context identifierPath="math, algebra" title="Algebra" type="2" displayOrder="1"/>
        </root>

    Parsing is all-or-nothing: structural errors are recorded while the stream is
    consumed and raised at the end, discarding everything parsed so far.
    """

    def __init__(self) -> None:
        self.depth = 0
        self.elements: set[ParsedElement] = set()
        self.error: ParseFailureError | None = None

    def parse_resource(self, name: str, directory: str | Path) -> set[ParsedElement]:
        """
        Parse the named document found in `directory`.

        Raises:
            ResourceNotFoundError: If the document does not exist.
            ParseFailureError: If the document is malformed.
        """
        path = resolve_resource(name, directory)
        logger.info(f"Parsing context document {path}")
        return self.parse(path)

    def parse_string(self, document: str | bytes) -> set[ParsedElement]:
        """Parse an in-memory document."""
        data = document.encode("utf-8") if isinstance(document, str) else document
        return self.parse(io.BytesIO(data))

    def parse(self, source: XmlSource) -> set[ParsedElement]:
        """
        Parse a document from a path or a binary file object.

        Returns:
            The set of parsed elements; equal elements (same identifier and path) collapse.

        Raises:
            ResourceNotFoundError: If `source` is a path that does not exist.
            ParseFailureError: On malformed XML or unexpected elements.
        """
        if isinstance(source, str | Path) and not Path(source).is_file():
            msg = f"Resource not found: {source}"
            raise ResourceNotFoundError(msg)

        self._start_document()
        try:
            events = etree.iterparse(
                source if not isinstance(source, Path) else str(source),
                events=("start", "end"),
                resolve_entities=False,
                no_network=True,
                load_dtd=False,
            )
            for event, element in events:
                name = etree.QName(element).localname
                if event == "start":
                    self._did_start_element(name, element.attrib)
                else:
                    self._did_end_element(name)
                    element.clear()
        except etree.XMLSyntaxError as e:
            msg = f"Failed to parse context document: {e}"
            logger.error(msg)
            raise ParseFailureError(msg) from e

        if self.error is not None:
            logger.error(f"Context document rejected: {self.error}")
            raise self.error

        logger.info(f"Parsed {len(self.elements)} context elements")
        return set(self.elements)

    def _start_document(self) -> None:
        self.depth = 0
        self.elements = set()
        self.error = None

    def _record_error(self, error: ParseFailureError) -> None:
        # Only the first structural error is reported.
        if self.error is None:
            self.error = error

    def _did_start_element(self, name: str, attributes: Mapping[str, str]) -> None:
        if self.depth == 0:
            if name != ROOT_ELEMENT_NAME:
                self._record_error(UnexpectedElementNameError(name))
        elif name == CONTEXT_ELEMENT_NAME:
            self._create_element(attributes)
        else:
            self._record_error(UnexpectedElementNameError(name))
        self.depth += 1

    def _did_end_element(self, name: str) -> None:
        self.depth -= 1

    def _create_element(self, attributes: Mapping[str, str]) -> None:
        """Derive a ParsedElement from the attribute bag of a <context> element."""
        identifier_path = split_identifier_path(attributes.get(ATTR_IDENTIFIER_PATH))
        if not identifier_path:
            logger.warning(
                f"Skipping context '{attributes.get(ATTR_TITLE, '')}' without an identifier path"
            )
            return

        display_order = _parse_int(attributes.get(ATTR_DISPLAY_ORDER))
        try:
            element = ParsedElement(
                title=attributes.get(ATTR_TITLE, ""),
                type=parse_context_type(_parse_int(attributes.get(ATTR_TYPE))),
                topic=parse_context_topic(attributes.get(ATTR_TOPIC)),
                identifier=identifier_path[-1],
                display_order=display_order if display_order is not None else DEFAULT_DISPLAY_ORDER,
                identifier_path=identifier_path,
            )
        except ValidationError as e:
            self._record_error(ParseFailureError(f"Invalid context element: {e}"))
            return

        if element in self.elements:
            logger.debug(f"Duplicate context {list(identifier_path)} ignored")
            return
        self.elements.add(element)


def ordered_elements(elements: Iterable[ParsedElement]) -> list[ParsedElement]:
    """Sort elements parents first, then by display order and path."""
    return sorted(elements, key=lambda e: (e.depth, e.display_order, e.identifier_path))
