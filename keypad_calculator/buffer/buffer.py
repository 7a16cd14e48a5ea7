"""Expression buffer: keypad editing rules as pure state transitions."""
from typing import Tuple

from keypad_calculator.common.logger import logger
from keypad_calculator.common.models import (
    Action,
    BufferState,
    Clear,
    DecimalPoint,
    Delete,
    Digit,
    DoubleZero,
    Equal,
    EvaluationErrorKind,
    EvaluationFailure,
    Operator,
    Percent,
)
from keypad_calculator.common.parser import ExpressionParser, format_number, is_operator, last_operator_index


# Display sentinels
EMPTY_DISPLAY = "0"
BLANK_DISPLAY = " "
DIVISION_BY_ZERO_MESSAGE = "Cannot divide by 0"
ERROR_MESSAGE = "Error"

Transition = Tuple[BufferState, str]


def _fresh_if_evaluated(state: BufferState) -> BufferState:
    """Start over when the display still shows the previous result."""
    if state.just_evaluated:
        return BufferState()
    return state


def _show(state: BufferState) -> Transition:
    return state, state.expression


class ExpressionBuffer:
    """
    Accumulate an arithmetic expression one key press at a time.

    Every operation takes the current BufferState and returns a (new state, display) pair.
    States are immutable, so a caller can keep or compare previous states freely.

    Editing rules:
        - No two consecutive operators (a second operator replaces the first)
        - No leading operator, except a unary minus
        - At most one decimal point per number
    """

    @staticmethod
    def append_digit(state: BufferState, digit: int) -> Transition:
        """
        Append a digit to the number being typed.

        :param BufferState state: Current state
        :param int digit: Digit between 0 and 9

        :return: New state and display
        :rtype: Transition
        """
        state = _fresh_if_evaluated(state)
        text = str(digit)
        return _show(state.model_copy(update={
            "expression": state.expression + text,
            "fragment": state.fragment + text,
        }))

    @staticmethod
    def append_double_zero(state: BufferState) -> Transition:
        """Append '00' to the number being typed (no leading-zero suppression)."""
        state = _fresh_if_evaluated(state)
        return _show(state.model_copy(update={
            "expression": state.expression + "00",
            "fragment": state.fragment + "00",
        }))

    @staticmethod
    def apply_operator(state: BufferState, op: str) -> Transition:
        """
        Append a binary operator, or replace the trailing one.

        On an empty expression only '-' is accepted, as a unary minus.

        :param BufferState state: Current state
        :param str op: One of '+', '-', '*', '/'

        :return: New state and display
        :rtype: Transition
        """
        state = state.model_copy(update={"just_evaluated": False})

        if not state.expression:
            if op == "-":
                return _show(state.model_copy(update={"expression": "-", "fragment": "-"}))
            return state, EMPTY_DISPLAY

        if is_operator(state.expression[-1]):
            expression = state.expression[:-1] + op
        else:
            expression = state.expression + op

        return _show(state.model_copy(update={"expression": expression, "fragment": ""}))

    @staticmethod
    def append_decimal_point(state: BufferState) -> Transition:
        """
        Add a decimal point to the number being typed.

        An empty number becomes '0.', a number that already has a point is left unchanged.
        """
        state = _fresh_if_evaluated(state)

        if not state.fragment:
            suffix = "0."
        elif "." in state.fragment:
            return _show(state)
        else:
            suffix = "."

        return _show(state.model_copy(update={
            "expression": state.expression + suffix,
            "fragment": state.fragment + suffix,
        }))

    @staticmethod
    def apply_percent(state: BufferState) -> Transition:
        """
        Turn the number being typed into a percentage.

        The number is divided by 100 and written back followed by '%'. Pressing it again divides again.

        :param BufferState state: Current state

        :return: New state and display
        :rtype: Transition
        """
        if not state.fragment:
            return _show(state)

        try:
            formatted = format_number(float(state.fragment) / 100.0)
        except ValueError as exc:
            logger.warning(f"% ignored, cannot convert {state.fragment!r}: {exc}")
            return _show(state)

        last_op = last_operator_index(state.expression)
        expression = state.expression[:last_op + 1] + formatted + "%"

        return _show(state.model_copy(update={"expression": expression, "fragment": formatted}))

    @staticmethod
    def evaluate(state: BufferState) -> Transition:
        """
        Evaluate the expression and show the result.

        A trailing operator or decimal point is dropped first. On success the result becomes the
        new expression and the next digit starts over. On failure the buffer is emptied and an
        error message is shown.

        :param BufferState state: Current state

        :return: New state and display
        :rtype: Transition
        """
        if not state.expression.strip():
            return state, EMPTY_DISPLAY

        expression = state.expression
        if is_operator(expression[-1]) or expression[-1] == ".":
            expression = expression[:-1]

        result = ExpressionParser.evaluate(expression)

        if isinstance(result, EvaluationFailure):
            cleared = BufferState()
            if result.kind is EvaluationErrorKind.DIVISION_BY_ZERO:
                logger.warning(f"Division by zero in {expression!r}")
                return cleared, DIVISION_BY_ZERO_MESSAGE
            logger.error(f"Evaluation error ({result.kind.value}) in {expression!r}: {result.message}")
            return cleared, ERROR_MESSAGE

        formatted = format_number(result.value)
        return BufferState(expression=formatted, fragment=formatted, just_evaluated=True), formatted

    @staticmethod
    def clear_all(state: BufferState) -> Transition:
        return BufferState(), BLANK_DISPLAY

    @staticmethod
    def delete_last(state: BufferState) -> Transition:
        """
        Remove the last character of the expression.

        The number being typed is recomputed from what is left after the last operator.
        """
        if not state.expression:
            return state, BLANK_DISPLAY

        expression = state.expression[:-1]
        last_op = last_operator_index(expression)
        fragment = expression[last_op + 1:] if last_op >= 0 else expression

        new_state = BufferState(expression=expression, fragment=fragment, just_evaluated=False)
        return new_state, expression or EMPTY_DISPLAY

    @staticmethod
    def apply(state: BufferState, action: Action) -> Transition:
        """
        Apply any key press action.

        :param BufferState state: Current state
        :param Action action: Key press

        :return: New state and display
        :rtype: Transition
        :raises TypeError: If the action is not a known key press
        """
        if isinstance(action, Digit):
            return ExpressionBuffer.append_digit(state, action.value)
        if isinstance(action, DoubleZero):
            return ExpressionBuffer.append_double_zero(state)
        if isinstance(action, Operator):
            return ExpressionBuffer.apply_operator(state, action.symbol)
        if isinstance(action, DecimalPoint):
            return ExpressionBuffer.append_decimal_point(state)
        if isinstance(action, Percent):
            return ExpressionBuffer.apply_percent(state)
        if isinstance(action, Equal):
            return ExpressionBuffer.evaluate(state)
        if isinstance(action, Clear):
            return ExpressionBuffer.clear_all(state)
        if isinstance(action, Delete):
            return ExpressionBuffer.delete_last(state)
        raise TypeError(f"Unsupported action: {action!r}")
