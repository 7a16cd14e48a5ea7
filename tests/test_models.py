"""Test the pydantic models shared across the package."""
from pydantic import ValidationError
import pytest

from keypad_calculator.common.models import (
    BufferState,
    EvaluationErrorKind,
    EvaluationFailure,
    EvaluationSuccess,
    KeyPress,
    Token,
    TokenKind,
)


def test_buffer_state_defaults() -> None:
    state = BufferState()
    assert state.expression == ""
    assert state.fragment == ""
    assert state.just_evaluated is False


def test_buffer_state_is_frozen() -> None:
    """States are immutable; transitions build new ones."""
    state = BufferState(expression="1")
    with pytest.raises(ValidationError):
        state.expression = "2"


def test_token_requires_text() -> None:
    with pytest.raises(ValidationError):
        Token(kind=TokenKind.NUMBER, text="")


def test_evaluation_results_are_discriminated() -> None:
    success = EvaluationSuccess(expression="1+1", value=2.0)
    failure = EvaluationFailure(expression="1/0", kind=EvaluationErrorKind.DIVISION_BY_ZERO)
    assert success.ok is True
    assert failure.ok is False
    assert failure.message == ""


def test_evaluation_success_invalid_value_type() -> None:
    with pytest.raises(ValidationError):
        EvaluationSuccess(expression="1", value="not a float")


def test_key_press_render() -> None:
    assert KeyPress(line=1, key="=", display="14").render() == "= -> 14"
    assert KeyPress(line=2, key="?", error="Unknown key: '?'").render() == "? -> ERROR: Unknown key: '?'"


def test_key_press_line_must_be_positive() -> None:
    with pytest.raises(ValidationError):
        KeyPress(line=0, key="1", display="1")
