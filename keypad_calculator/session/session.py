"""Calculator session: one buffer state, one key press at a time."""
import threading
from typing import Iterable, List

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from keypad_calculator.buffer.buffer import EMPTY_DISPLAY, ExpressionBuffer
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
    KeyPress,
    Operator,
    Percent,
)


# Key-script tokens that map to a fixed action (compared in upper case)
KEY_ALIASES: dict[str, Action] = {
    "00": DoubleZero(),
    "+": Operator(symbol="+"),
    "-": Operator(symbol="-"),
    "*": Operator(symbol="*"),
    "X": Operator(symbol="*"),
    "×": Operator(symbol="*"),
    "/": Operator(symbol="/"),
    "÷": Operator(symbol="/"),
    ".": DecimalPoint(),
    "%": Percent(),
    "=": Equal(),
    "AC": Clear(),
    "C": Clear(),
    "DEL": Delete(),
    "⌫": Delete(),
}


def parse_key(key: str) -> Action:
    """
    Translate a key-script token into a key press action.

    Accepted tokens: '0'-'9', '00', '+', '-', '*' (or 'x', '×'), '/' (or '÷'), '.', '%', '=',
    'AC' or 'C' (clear), 'DEL' or '⌫' (delete). Case and surrounding whitespace are ignored.

    :param str key: Key-script token

    :return: Matching action
    :rtype: Action
    :raises ValueError: If the token is not a known key
    """
    token = key.strip().upper()
    if len(token) == 1 and token in "0123456789":
        return Digit(value=int(token))
    if token in KEY_ALIASES:
        return KEY_ALIASES[token]
    raise ValueError(f"Unknown key: {key!r}")


class CalculatorSession(BaseModel):
    """
    Isolated calculator session.

    Owns its BufferState for its whole lifetime and applies one action at a time:
    concurrent presses on the same session are serialized by a per-session lock.
    Sessions never share state with each other.
    """

    model_config = ConfigDict(validate_assignment=True)

    state: BufferState = Field(default_factory=BufferState, description="Current editing state")
    display: str = Field(default=EMPTY_DISPLAY, description="Text currently shown on the display")

    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    def press(self, action: Action) -> str:
        """
        Apply one key press and return the new display.

        :param Action action: Key press

        :return: Display after the key press
        :rtype: str
        """
        with self._lock:
            logger.debug(f"Key pressed: {action!r}")
            self.state, self.display = ExpressionBuffer.apply(self.state, action)
            return self.display

    def replay(self, lines: Iterable[str]) -> List[KeyPress]:
        """
        Press every key of a key-script, one key per line.

        Blank lines are skipped but still count for line numbering. An unknown key is recorded
        with its error and leaves the session untouched; the following keys are still pressed.

        :param Iterable[str] lines: Key-script lines

        :return: One KeyPress per non-blank line
        :rtype: List[KeyPress]
        """
        presses: List[KeyPress] = []
        for line_number, line in enumerate(lines, start=1):
            key = line.strip()
            if not key:
                continue
            try:
                action = parse_key(key)
            except ValueError as exc:
                logger.error(f"🎹❌ Line {line_number}: {exc}")
                presses.append(KeyPress(line=line_number, key=key, error=str(exc)))
                continue
            presses.append(KeyPress(line=line_number, key=key, display=self.press(action)))
        return presses
