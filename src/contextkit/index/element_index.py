import logging
from collections.abc import Iterable, Iterator, Sequence

from domain_models.manifest import ParsedElement
from domain_models.types import ElementKey

logger = logging.getLogger(__name__)


class ElementIndex:
    """
    In-memory set of parsed elements keyed by (identifier, identifier path).

    Insertion ordered; an element equal to one already stored is never added twice.

    Lookups by bare identifier (`first_matching`) return the earliest inserted match.
    They do not take the parent into account, so descent through `descendant` can
    pick an element living under a different parent when identifiers are reused
    across branches.
    """

    def __init__(self, elements: Iterable[ParsedElement] = ()) -> None:
        self._elements: dict[ElementKey, ParsedElement] = {}
        for element in elements:
            self.insert(element)

    def insert(self, element: ParsedElement) -> bool:
        """
        Add an element unless an equal one is already indexed.

        Returns:
            True if the element was added, False if it was already present.
        """
        if element.key in self._elements:
            return False
        self._elements[element.key] = element
        return True

    def replace(self, elements: Iterable[ParsedElement]) -> None:
        """Drop every element and index `elements` instead."""
        self.clear()
        for element in elements:
            self.insert(element)
        logger.debug(f"Element index replaced with {len(self)} elements")

    def clear(self) -> None:
        self._elements.clear()

    def get(self, key: ElementKey) -> ParsedElement | None:
        return self._elements.get(key)

    def first_matching(self, identifier: str) -> ParsedElement | None:
        """Return the first indexed element whose identifier equals `identifier`."""
        for element in self._elements.values():
            if element.identifier == identifier:
                return element
        return None

    def descendant(
        self, start: ParsedElement, remaining_path: Sequence[str]
    ) -> ParsedElement | None:
        """
        Walk `remaining_path` one segment at a time starting from `start`.

        An empty path yields `start` itself. Each segment is looked up with
        `first_matching`; a segment without a match ends the walk with None.
        """
        if not remaining_path:
            return start
        child = self.first_matching(remaining_path[0])
        if child is None:
            return None
        return self.descendant(child, remaining_path[1:])

    def __len__(self) -> int:
        return len(self._elements)

    def __iter__(self) -> Iterator[ParsedElement]:
        return iter(self._elements.values())

    def __contains__(self, element: object) -> bool:
        return isinstance(element, ParsedElement) and element.key in self._elements
