from typing import Annotated, Literal, TypeAlias

from pydantic import BaseModel, ConfigDict, Field

from domain_models.types import BinaryValueType


class BinaryItem(BaseModel):
    """Outcome item holding a boolean result (correct/incorrect, pass/fail, yes/no)."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["binary"] = "binary"
    identifier: str = Field(..., description="Identifier of the item within the activity.")
    title: str = Field(..., description="Human readable title.")
    value_type: BinaryValueType = Field(..., description="How the boolean is presented.")
    value: bool = Field(..., description="The recorded outcome.")


class ScoreItem(BaseModel):
    """Outcome item holding a score out of a maximum."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["score"] = "score"
    identifier: str = Field(..., description="Identifier of the item within the activity.")
    title: str = Field(..., description="Human readable title.")
    score: float = Field(..., description="Achieved score.")
    max_score: float = Field(..., description="Maximum achievable score.")


class QuantityItem(BaseModel):
    """Outcome item holding a plain quantity (e.g. hints used)."""

    model_config = ConfigDict(extra="forbid")

    kind: Literal["quantity"] = "quantity"
    identifier: str = Field(..., description="Identifier of the item within the activity.")
    title: str = Field(..., description="Human readable title.")
    quantity: float = Field(..., description="Recorded quantity.")


ActivityItem: TypeAlias = Annotated[
    BinaryItem | ScoreItem | QuantityItem, Field(discriminator="kind")
]
