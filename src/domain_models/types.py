from enum import IntEnum, StrEnum
from typing import TypeAlias

# IdentifierPath addresses a context from the root of the tree.
# e.g., ("math", "algebra", "linear-equations")
IdentifierPath: TypeAlias = tuple[str, ...]

# ElementKey is the identity of a parsed element: (identifier, identifier path).
ElementKey: TypeAlias = tuple[str, IdentifierPath]


class ContextType(IntEnum):
    """
    Kind of a context node. Ordinals are part of the document and wire format.
    """

    NONE = 0
    SUBJECT = 1
    CHAPTER = 2
    LEVEL = 3
    ACTIVITY_SECTION = 4
    ACTIVITY = 5
    TASK = 6
    EXERCISE = 7
    QUIZ = 8


class ContextTopic(StrEnum):
    """
    Subject area of a context. Values are matched case-sensitively.
    """

    MATH = "math"
    SCIENCE = "science"
    LITERACY_AND_WRITING = "literacyAndWriting"
    WORLD_LANGUAGE = "worldLanguage"
    SOCIAL_SCIENCE = "socialScience"
    COMPUTER_SCIENCE_AND_ENGINEERING = "computerScienceAndEngineering"
    ARTS_AND_MUSIC = "artsAndMusic"
    HEALTH_AND_FITNESS = "healthAndFitness"


class BinaryValueType(IntEnum):
    """How a binary outcome item is presented."""

    TRUE_FALSE = 0
    PASS_FAIL = 1
    YES_NO = 2


class ActivityState(StrEnum):
    """Lifecycle of a store activity."""

    CREATED = "created"
    STARTED = "started"
    STOPPED = "stopped"


class ActivityOutcome(StrEnum):
    """What begin_activity did to the node's activity."""

    STARTED = "started"  # a new activity was created and started
    RESTARTED = "restarted"  # the existing activity was started in place


def parse_context_type(value: int | str | None) -> ContextType:
    """
    Map a raw ordinal to a ContextType.
    Unknown or missing values fall back to ContextType.NONE.
    """
    if value is None:
        return ContextType.NONE
    try:
        return ContextType(int(value))
    except ValueError:
        return ContextType.NONE


def parse_context_topic(value: str | None) -> ContextTopic | None:
    """Map a raw topic string to a ContextTopic, or None if not in the vocabulary."""
    if not value:
        return None
    try:
        return ContextTopic(value)
    except ValueError:
        return None
