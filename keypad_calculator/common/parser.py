"""Parse and evaluate keypad arithmetic expressions safely."""
from collections.abc import Callable as ABCCallable
from decimal import Decimal
import math
import operator
import sys
from typing import Callable, List, Tuple

from keypad_calculator.common.models import (
    EvaluationErrorKind,
    EvaluationFailure,
    EvaluationResult,
    EvaluationSuccess,
    Token,
    TokenKind,
)


# Type alias for operator functions (taking two floats, returning a float)
OperatorFn: ABCCallable[[float, float], float] = Callable[[float, float], float]

# Mapping of operator symbols to (precedence, function)
OPERATORS: dict[str, Tuple[int, OperatorFn]] = {
    "+": (1, operator.add),
    "-": (1, operator.sub),
    "*": (2, operator.mul),
    "/": (2, operator.truediv),
}

# Divisors with a smaller magnitude are treated as zero
EPSILON: float = sys.float_info.epsilon

# Precision of format_number: significant digits, then fractional digits
SIGNIFICANT_DIGITS: int = 15
MAX_FRACTION_DIGITS: int = 15

DIGITS = "0123456789"


class EvaluationError(ValueError):
    """Base class of every evaluation failure."""

    kind: EvaluationErrorKind = EvaluationErrorKind.MALFORMED_EXPRESSION


class DivisionByZeroError(EvaluationError):
    kind = EvaluationErrorKind.DIVISION_BY_ZERO


class MalformedExpressionError(EvaluationError):
    kind = EvaluationErrorKind.MALFORMED_EXPRESSION


class ExpressionOverflowError(EvaluationError):
    kind = EvaluationErrorKind.OVERFLOW


def is_operator(char: str) -> bool:
    """Return True if ``char`` is one of the four binary operators."""
    return char in OPERATORS


def last_operator_index(expr: str) -> int:
    """
    Find the position of the last operator in an expression.

    :param str expr: Expression string

    :return: Index of the last operator, or -1 if there is none
    :rtype: int
    """
    for i in range(len(expr) - 1, -1, -1):
        if is_operator(expr[i]):
            return i
    return -1


def format_number(value: float) -> str:
    """
    Render a number the way the display shows it.

    Rounded to 15 significant digits (the precision a double can hold) and to at most 15
    fractional digits, trailing zeros and a dangling decimal point removed, always '.' as
    separator and never exponent notation.

    Examples:
        - 14.0 -> "14"
        - 0.1 + 0.2 -> "0.3"
        - 1 / 3 -> "0.333333333333333"
        - 1000.1 + 2000.2 -> "3000.3"

    :param float value: Finite number to format

    :return: Formatted number
    :rtype: str
    :raises ValueError: If the value is infinite or NaN
    """
    if not math.isfinite(value):
        raise ValueError(f"Cannot format non-finite value: {value}")

    # Significant digits first, so binary noise in large values is dropped
    rounded = Decimal(f"{value:.{SIGNIFICANT_DIGITS}g}")
    text = format(rounded, f".{MAX_FRACTION_DIGITS}f").rstrip("0").rstrip(".")
    # -0.0, or a tiny negative value rounded away
    if text == "-0":
        return "0"
    return text


class ExpressionParser:
    """
    Parse and evaluate expressions typed on the calculator keypad.

    Design constraints:
        - No eval(), no dynamic code execution
        - Stateless: each call is independent and side-effect free

    Algorithm:
        1. Tokenize character by character (numbers may carry a unary minus)
        2. Convert to Reverse Polish Notation (RPN) using Shunting-yard
        3. Evaluate RPN using a stack

    Examples:
        - Infix expression (keypad notation): 3+4*2
        - Corresponding Reverse Polish Notation (RPN): 3 4 2 * +
    """

    @staticmethod
    def tokenize(expr: str) -> List[Token]:
        """
        Split a keypad expression into tokens.

        A number starts at a digit, at '.', or at a '-' that is the first character or follows
        another operator (unary minus). A number holds at most one '.', a second one ends it.
        Characters that are neither digits, '.' nor operators (e.g. the '%' marker) are skipped.

        :param str expr: Expression as typed, e.g. "12+-3.5*2"

        :return: List of tokens
        :rtype: List[Token]
        """
        tokens: List[Token] = []
        i = 0

        while i < len(expr):
            char = expr[i]

            if char in DIGITS or char == "." or (char == "-" and (i == 0 or is_operator(expr[i - 1]))):
                start = i
                if char == "-":
                    i += 1
                has_dot = False
                while i < len(expr) and (expr[i] in DIGITS or expr[i] == "."):
                    if expr[i] == ".":
                        if has_dot:
                            break
                        has_dot = True
                    i += 1
                tokens.append(Token(kind=TokenKind.NUMBER, text=expr[start:i]))
            elif is_operator(char):
                tokens.append(Token(kind=TokenKind.OPERATOR, text=char))
                i += 1
            else:
                i += 1

        return tokens

    @staticmethod
    def to_rpn(tokens: List[Token]) -> List[Token]:
        """
        Convert a list of tokens into Reverse Polish Notation (RPN) using the Shunting-yard algorithm.

        :param List[Token] tokens: List of infix tokens

        :return: List of tokens in RPN order
        :rtype: List[Token]
        """
        output: List[Token] = []
        stack: List[Token] = []

        for token in tokens:
            if token.kind is TokenKind.NUMBER:
                # Numbers are added directly to the output
                output.append(token)
            else:
                # Operator: pop operators from stack with higher or equal precedence
                prec = OPERATORS[token.text][0]
                while stack and OPERATORS[stack[-1].text][0] >= prec:
                    output.append(stack.pop())
                stack.append(token)

        # Append remaining operators in reverse order (stack top first)
        output.extend(stack[::-1])
        return output

    @staticmethod
    def _parse_number(token: Token) -> float:
        try:
            return float(token.text)
        except ValueError:
            raise MalformedExpressionError(f"Invalid number: {token.text!r}") from None

    @staticmethod
    def evaluate_rpn(rpn: List[Token]) -> float:
        """
        Evaluate a list of RPN tokens with a stack.

        :param List[Token] rpn: Tokens in RPN order

        :return: Computed result
        :rtype: float
        :raises DivisionByZeroError: If a divisor's magnitude is below machine epsilon
        :raises MalformedExpressionError: On an invalid number or an unbalanced stack
        :raises ExpressionOverflowError: If the result is not finite
        """
        stack: List[float] = []
        for token in rpn:
            if token.kind is TokenKind.NUMBER:
                stack.append(ExpressionParser._parse_number(token))
                continue

            # Operator requires two operands
            if len(stack) < 2:
                raise MalformedExpressionError("Not enough operands")
            b: float = stack.pop()
            a: float = stack.pop()
            if token.text == "/" and abs(b) < EPSILON:
                raise DivisionByZeroError("Cannot divide by 0")
            stack.append(OPERATORS[token.text][1](a, b))

        if len(stack) != 1:
            raise MalformedExpressionError(f"Expected a single result, got {len(stack)} values")

        if not math.isfinite(stack[0]):
            raise ExpressionOverflowError(f"Result is not finite: {stack[0]}")

        return stack[0]

    @staticmethod
    def compute(expr: str) -> float:
        """
        Evaluate an expression and return the raw number.

        :param str expr: Expression string

        :return: Computed result
        :rtype: float
        :raises EvaluationError: If the expression cannot be evaluated
        """
        tokens = ExpressionParser.tokenize(expr)
        rpn = ExpressionParser.to_rpn(tokens)
        return ExpressionParser.evaluate_rpn(rpn)

    @staticmethod
    def evaluate(expr: str) -> EvaluationResult:
        """
        Evaluate an expression without raising for evaluation failures.

        :param str expr: Expression string

        :return: EvaluationSuccess holding the value, or EvaluationFailure holding the error kind
        :rtype: EvaluationResult
        """
        try:
            value = ExpressionParser.compute(expr)
        except EvaluationError as exc:
            return EvaluationFailure(expression=expr, kind=exc.kind, message=str(exc))
        return EvaluationSuccess(expression=expr, value=value)
