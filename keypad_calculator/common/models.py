"""Pydantic models shared by the buffer, the evaluator and the session."""
from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


OperatorSymbol = Literal["+", "-", "*", "/"]


class BufferState(BaseModel):
    """
    Editing state of one calculator session.

    Transitions never modify an instance in place, they build a new one with ``model_copy``.
    """

    model_config = ConfigDict(frozen=True)

    expression: str = Field(default="", description="Full in-progress expression, e.g. '12+3.5*2'")
    fragment: str = Field(default="", description="Number currently being typed (after the last operator)")
    just_evaluated: bool = Field(default=False, description="True right after a successful '='")


class TokenKind(str, Enum):
    NUMBER = "number"
    OPERATOR = "operator"


class Token(BaseModel):
    """A classified substring of an expression."""

    model_config = ConfigDict(frozen=True)

    kind: TokenKind
    text: str = Field(..., min_length=1)


# Key press actions

class Digit(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["digit"] = "digit"
    value: int = Field(..., ge=0, le=9, description="Digit pressed")


class DoubleZero(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["double_zero"] = "double_zero"


class Operator(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["operator"] = "operator"
    symbol: OperatorSymbol = Field(..., description="Binary operator pressed")


class DecimalPoint(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["decimal_point"] = "decimal_point"


class Percent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["percent"] = "percent"


class Equal(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["equal"] = "equal"


class Clear(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["clear"] = "clear"


class Delete(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["delete"] = "delete"


Action = Union[Digit, DoubleZero, Operator, DecimalPoint, Percent, Equal, Clear, Delete]


# Evaluation results

class EvaluationErrorKind(str, Enum):
    DIVISION_BY_ZERO = "division_by_zero"
    MALFORMED_EXPRESSION = "malformed_expression"
    OVERFLOW = "overflow"


class EvaluationSuccess(BaseModel):
    """Successful evaluation of an expression."""

    ok: Literal[True] = True
    expression: str = Field(..., description="Evaluated expression")
    value: float = Field(..., description="Numeric result")


class EvaluationFailure(BaseModel):
    """Failed evaluation of an expression."""

    ok: Literal[False] = False
    expression: str = Field(..., description="Evaluated expression")
    kind: EvaluationErrorKind
    message: str = Field(default="", description="Human readable reason")


EvaluationResult = Union[EvaluationSuccess, EvaluationFailure]


class KeyPress(BaseModel):
    """One replayed line of a key-script."""

    line: int = Field(..., ge=1, description="Line number in the key-script")
    key: str = Field(..., description="Key as written in the key-script")
    display: Optional[str] = Field(default=None, description="Display after the key press")
    error: Optional[str] = Field(default=None, description="Why the key could not be pressed")

    def render(self) -> str:
        """Format as a result line: '<key> -> <display>' or '<key> -> ERROR: <error>'."""
        if self.error is not None:
            return f"{self.key} -> ERROR: {self.error}"
        return f"{self.key} -> {self.display}"
