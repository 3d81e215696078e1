import logging
from datetime import datetime
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from domain_models.activity import ActivityItem
from domain_models.constants import DEFAULT_DISPLAY_ORDER
from domain_models.types import (
    ActivityState,
    ContextTopic,
    ContextType,
    ElementKey,
    IdentifierPath,
)

# Configure logger
logger = logging.getLogger(__name__)


class ParsedElement(BaseModel):
    """
    Flat description of one context node, as parsed from a document or submitted by a caller.

    Identity is the pair (identifier, identifier_path): two elements with the same
    identifier under different ancestors are distinct, two elements with the same
    identifier and path are the same element regardless of title, type or order.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str = Field(default="", description="Human readable title of the context.")
    type: ContextType = Field(default=ContextType.NONE, description="Kind of the context node.")
    topic: ContextTopic | None = Field(default=None, description="Optional subject area.")
    identifier: str = Field(..., min_length=1, description="Last segment of the identifier path.")
    display_order: int = Field(
        default=DEFAULT_DISPLAY_ORDER, description="Ordering hint among siblings."
    )
    identifier_path: IdentifierPath = Field(
        ..., min_length=1, description="Root-first path of identifiers ending with this node."
    )

    @model_validator(mode="before")
    @classmethod
    def fill_identifier(cls, data: Any) -> Any:
        """Derive the identifier from the path when it is not given explicitly."""
        if isinstance(data, dict) and not data.get("identifier"):
            path = data.get("identifier_path")
            if path:
                data = {**data, "identifier": path[-1]}
        return data

    @field_validator("identifier_path")
    @classmethod
    def validate_segments(cls, v: IdentifierPath) -> IdentifierPath:
        """Reject blank path segments."""
        if any(not segment or not segment.strip() for segment in v):
            msg = f"Identifier path {list(v)} contains an empty segment."
            raise ValueError(msg)
        return v

    @model_validator(mode="after")
    def check_identifier(self) -> Self:
        """The identifier must be the last segment of the path."""
        if self.identifier != self.identifier_path[-1]:
            msg = (
                f"Identifier '{self.identifier}' does not match the last segment "
                f"of path {list(self.identifier_path)}."
            )
            logger.error(msg)
            raise ValueError(msg)
        return self

    @property
    def key(self) -> ElementKey:
        """Identity of this element."""
        return (self.identifier, self.identifier_path)

    @property
    def depth(self) -> int:
        """Number of ancestors above this element."""
        return len(self.identifier_path) - 1

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ParsedElement):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)


class ContextDescriptor(BaseModel):
    """
    Everything a store needs to build and decorate a native context node.
    Produced by the path resolver when the store materializes a node.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    type: ContextType = Field(..., description="Kind of the context node.")
    identifier: str = Field(..., min_length=1, description="Identifier of the node.")
    title: str = Field(..., description="Human readable title.")
    display_order: int = Field(default=DEFAULT_DISPLAY_ORDER, description="Ordering hint.")
    topic: ContextTopic | None = Field(default=None, description="Optional subject area.")
    identifier_path: IdentifierPath = Field(
        ..., min_length=1, description="Full path of the node being materialized."
    )
    universal_link_url: str | None = Field(
        default=None, description="Deep link into the node, if a URL prefix is configured."
    )

    @classmethod
    def from_element(
        cls, element: ParsedElement, identifier_path: IdentifierPath, url: str | None = None
    ) -> Self:
        """Build a descriptor for `identifier_path` from the element it resolved to."""
        return cls(
            type=element.type,
            identifier=element.identifier,
            title=element.title,
            display_order=element.display_order,
            topic=element.topic,
            identifier_path=identifier_path,
            universal_link_url=url,
        )


class ActivitySnapshot(BaseModel):
    """Persisted state of a context's current activity."""

    model_config = ConfigDict(extra="forbid")

    state: ActivityState = Field(..., description="Lifecycle state of the activity.")
    progress: float = Field(default=0.0, description="Cumulative progress.")
    progress_ranges: list[tuple[float, float]] = Field(
        default_factory=list, description="Merged progress intervals, sorted and disjoint."
    )
    duration: float = Field(default=0.0, ge=0.0, description="Seconds spent while started.")
    primary_item: ActivityItem | None = Field(default=None, description="Headline outcome item.")
    additional_items: list[ActivityItem] = Field(
        default_factory=list, description="Supplementary outcome items, in insertion order."
    )


class ContextSnapshot(BaseModel):
    """Persisted state of a materialized context node."""

    model_config = ConfigDict(extra="forbid")

    identifier_path: IdentifierPath = Field(..., min_length=1, description="Path of the node.")
    title: str = Field(..., description="Human readable title.")
    type: ContextType = Field(..., description="Kind of the context node.")
    topic: ContextTopic | None = Field(default=None, description="Optional subject area.")
    display_order: int = Field(default=DEFAULT_DISPLAY_ORDER, description="Ordering hint.")
    universal_link_url: str | None = Field(default=None, description="Deep link, if any.")
    is_active: bool = Field(default=False, description="Whether the node is the active one.")
    date_created: datetime = Field(..., description="When the store materialized the node.")
    activity: ActivitySnapshot | None = Field(default=None, description="Current activity.")
