import logging
from collections.abc import Sequence

from contextkit.index.element_index import ElementIndex
from contextkit.utils.links import build_universal_link
from domain_models.manifest import ContextDescriptor, ParsedElement

logger = logging.getLogger(__name__)


class PathResolver:
    """
    Resolves identifier paths against an ElementIndex.

    Acts as the store's node-materialization delegate: the store calls
    `create_node` once per path segment while it expands the tree top-down.
    Nothing is cached; every call walks the index again.
    """

    def __init__(self, index: ElementIndex, url_prefix: str | None = None) -> None:
        self.index = index
        self._url_prefix: str | None = None
        self.url_prefix = url_prefix

    @property
    def url_prefix(self) -> str | None:
        return self._url_prefix

    @url_prefix.setter
    def url_prefix(self, value: str | None) -> None:
        if value is None:
            self._url_prefix = None
            return
        self._url_prefix = value.strip() or None

    def resolve(self, identifier_path: Sequence[str]) -> ParsedElement | None:
        """
        Find the element addressed by `identifier_path`.

        The first segment is looked up as a root, the rest is walked with
        `ElementIndex.descendant`.
        """
        if not identifier_path:
            return None
        root = self.index.first_matching(identifier_path[0])
        if root is None:
            return None
        return self.index.descendant(root, identifier_path[1:])

    def create_node(
        self, identifier: str, parent_path: Sequence[str]
    ) -> ContextDescriptor | None:
        """
        Describe the node `identifier` below `parent_path`.

        Returns:
            A descriptor whose identifier_path is `parent_path + [identifier]`,
            or None if the path does not resolve.
        """
        identifier_path = (*parent_path, identifier)
        element = self.resolve(identifier_path)
        if element is None:
            logger.error(f"Could not init context for identifier '{identifier_path[0]}'")
            return None

        url = build_universal_link(self.url_prefix, identifier_path)
        descriptor = ContextDescriptor.from_element(element, identifier_path, url)
        logger.info(f"Built context for {list(element.identifier_path)}")
        return descriptor
