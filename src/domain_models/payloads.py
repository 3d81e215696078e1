"""
Wire payloads exchanged with the calling application.
Field names follow the caller's camelCase convention through aliases.
"""

from typing import Any, Literal, Self

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from domain_models.activity import BinaryItem, QuantityItem, ScoreItem
from domain_models.constants import (
    DEFAULT_DISPLAY_ORDER,
    RESPONSE_PREFIX_ERROR,
    RESPONSE_PREFIX_OK,
)
from domain_models.manifest import ParsedElement
from domain_models.types import BinaryValueType, parse_context_topic, parse_context_type


class WirePayload(BaseModel):
    """Base for payloads decoded from the caller. Unknown keys are ignored."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ContextPayload(WirePayload):
    """A context description submitted at runtime."""

    identifier_path: list[str] = Field(..., min_length=1, description="Root-first path.")
    title: str = Field(..., description="Human readable title.")
    type: int | None = Field(default=None, description="ContextType ordinal.")
    topic: str | None = Field(default=None, description="ContextTopic value.")
    display_order: int | None = Field(default=None, description="Ordering hint.")

    def to_element(self) -> ParsedElement:
        """
        Convert to a ParsedElement.
        Unknown type ordinals and topics degrade to NONE / no topic, as in documents.
        """
        return ParsedElement(
            title=self.title,
            type=parse_context_type(self.type),
            topic=parse_context_topic(self.topic),
            identifier=self.identifier_path[-1],
            display_order=(
                self.display_order if self.display_order is not None else DEFAULT_DISPLAY_ORDER
            ),
            identifier_path=tuple(self.identifier_path),
        )


class ActivityItemPayload(WirePayload):
    """Fields shared by every outcome item payload."""

    identifier: str = Field(..., description="Identifier of the item.")
    title: str = Field(..., description="Human readable title.")
    is_primary_activity_item: bool = Field(
        default=False, description="Replace the primary item instead of appending."
    )


class BinaryItemPayload(ActivityItemPayload):
    # Range is checked by the session so it can report InvalidItemType.
    type: int = Field(..., description="BinaryValueType ordinal (0, 1 or 2).")
    is_correct: bool = Field(..., description="The recorded outcome.")

    def to_item(self) -> BinaryItem:
        return BinaryItem(
            identifier=self.identifier,
            title=self.title,
            value_type=BinaryValueType(self.type),
            value=self.is_correct,
        )


class ScoreItemPayload(ActivityItemPayload):
    score: float = Field(..., description="Achieved score.")
    max_score: float = Field(..., description="Maximum achievable score.")

    def to_item(self) -> ScoreItem:
        return ScoreItem(
            identifier=self.identifier,
            title=self.title,
            score=self.score,
            max_score=self.max_score,
        )


class QuantityItemPayload(ActivityItemPayload):
    quantity: float = Field(..., description="Recorded quantity.")

    def to_item(self) -> QuantityItem:
        return QuantityItem(identifier=self.identifier, title=self.title, quantity=self.quantity)


class BridgeRequest(BaseModel):
    """One call read from the command loop: an action name and its positional arguments."""

    model_config = ConfigDict(extra="forbid")

    action: str = Field(..., min_length=1, description="camelCase action name.")
    args: list[Any] = Field(default_factory=list, description="Positional arguments.")


class BridgeResponse(BaseModel):
    """Single response sent back for every bridge call."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    status: Literal["ok", "error"] = Field(..., description="Outcome of the call.")
    message: str = Field(..., description="Human readable status message.")
    error: str | None = Field(default=None, description="Underlying error description, if any.")

    @property
    def ok(self) -> bool:
        return self.status == "ok"

    @classmethod
    def success(cls, message: str) -> Self:
        return cls(status="ok", message=f"{RESPONSE_PREFIX_OK} {message}")

    @classmethod
    def failure(cls, message: str, error: str | None = None) -> Self:
        return cls(status="error", message=f"{RESPONSE_PREFIX_ERROR} {message}", error=error)
