"""Command builders and reply parsers for the railroad controller text protocol.

Commands are single ASCII lines. Replies are blocks of text closed by a
``<END`` line; the parsers here only see the reply body and never touch I/O.

Malformed lines are dropped with a debug log, never raised: a partial
roster is still a useful roster.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator

from .models import Direction, Train, TrainFunction

_LOGGER = logging.getLogger(__name__)

DEFAULT_PORT = 15471

REPLY_TERMINATOR = "<END"
REPLY_HEADER = "<REPLY"
EVENT_MARKER = "<EVENT"
FRAMING_MARKERS: tuple[str, ...] = (REPLY_TERMINATOR, REPLY_HEADER)

COMMAND_TERMINATOR = "\n"

# Object id the controller uses for layout-wide commands.
GLOBAL_OBJECT_ID = 1
TRAIN_MANAGER_ID = 10

_WHITESPACE_RE = re.compile(r"\s+")
# Plain ASCII decimal with optional sign; no digit separators.
_INTEGER_RE = re.compile(r"[+-]?[0-9]+")


def _command(body: str) -> str:
    return body + COMMAND_TERMINATOR


def _require_object_id(value: int, what: str) -> int:
    """Validate an integer id field (bool is rejected even though it is an int)."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{what} must be an integer, got {type(value).__name__}")
    return value


def encode_list_trains() -> str:
    """Build the roster query: every train with its name."""
    return _command(f"queryObjects({TRAIN_MANAGER_ID}, name)")


def encode_get_functions(train_id: int) -> str:
    """Build a query for all function states of a train."""
    train_id = _require_object_id(train_id, "Train id")
    return _command(f"get({train_id}, func)")


def encode_set_function(train_id: int, func_id: int, value: bool) -> str:
    """Build a command switching one function of a train on or off."""
    train_id = _require_object_id(train_id, "Train id")
    func_id = _require_object_id(func_id, "Function id")
    return _command(f"set({train_id}, func[{func_id}, {1 if value else 0}])")


def encode_set_speed(train_id: int, percent: int) -> str:
    """Build a speed command.

    Args:
        train_id: Target train object id.
        percent: Speed step 0-100.
    """
    train_id = _require_object_id(train_id, "Train id")
    percent = _require_object_id(percent, "Speed")
    if not 0 <= percent <= 100:
        raise ValueError(f"Speed must be 0-100, got {percent}")
    return _command(f"set({train_id}, speed[{percent}])")


def encode_set_direction(train_id: int, direction: Direction) -> str:
    """Build a direction command (0 forward, 1 reverse)."""
    train_id = _require_object_id(train_id, "Train id")
    return _command(f"set({train_id}, dir[{Direction(direction).value}])")


def encode_stop_all() -> str:
    """Build the layout-wide emergency stop."""
    return _command(f"set({GLOBAL_OBJECT_ID}, stop)")


def encode_start_all() -> str:
    """Build the layout-wide resume."""
    return _command(f"set({GLOBAL_OBJECT_ID}, go)")


def _parse_int(token: str) -> int | None:
    if _INTEGER_RE.fullmatch(token) is None:
        return None
    return int(token)


def _body_lines(reply_text: str) -> Iterator[str]:
    """Yield trimmed, non-blank reply lines that are not framing markers."""
    normalized = reply_text.replace("\r\n", "\n").replace("\r", "\n")
    for line in normalized.split("\n"):
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith(FRAMING_MARKERS):
            continue
        yield stripped


def _parse_train_name(rest: str) -> str:
    first = rest.find('"')
    last = rest.rfind('"')
    if first != -1 and first < last:
        return rest[first + 1 : last]
    return rest


def decode_train_roster(reply_text: str) -> list[Train]:
    """Parse a roster reply into trains, keeping reply order.

    Each body line is ``<id> <name>``; a quoted name is unwrapped using the
    first and last double quote. Lines without an integer id or without a
    name part are dropped.
    """
    trains: list[Train] = []
    for line in _body_lines(reply_text):
        parts = _WHITESPACE_RE.split(line, maxsplit=1)
        if len(parts) != 2:
            _LOGGER.debug("Unexpected roster line format: %r", line)
            continue
        id_token, rest = parts
        train_id = _parse_int(id_token)
        if train_id is None:
            _LOGGER.debug("Failed to parse train id from %r", id_token)
            continue
        trains.append(Train(id=train_id, name=_parse_train_name(rest.strip())))
    return trains


def decode_function_list(reply_text: str) -> list[TrainFunction]:
    """Parse a function-state reply, sorted ascending by function id.

    Only the text between the first ``[`` and the last ``]`` of a line is
    read; it must hold exactly two integers ``funcId, value``. Duplicate ids
    are all kept, in reply order among themselves.
    """
    functions: list[TrainFunction] = []
    for line in _body_lines(reply_text):
        start = line.find("[")
        end = line.rfind("]")
        if start == -1 or end <= start:
            _LOGGER.debug("Invalid function line format: %r", line)
            continue
        parts = line[start + 1 : end].split(",")
        if len(parts) != 2:
            _LOGGER.debug("Failed to parse function parts: %r", line)
            continue
        func_id = _parse_int(parts[0].strip())
        value = _parse_int(parts[1].strip())
        if func_id is None or value is None:
            _LOGGER.debug("Failed to parse function parts: %r", line)
            continue
        functions.append(TrainFunction(id=func_id, value=value != 0))
    return sorted(functions, key=lambda function: function.id)


def parse_event_lines(chunk: str) -> list[str]:
    """Extract event descriptions from a raw received chunk.

    Lines starting with ``<EVENT`` are returned with surrounding whitespace
    and angle brackets removed; all other lines are ignored.
    """
    events: list[str] = []
    for line in chunk.split("\n"):
        stripped = line.strip()
        if stripped.startswith(EVENT_MARKER):
            events.append(stripped.strip("<>"))
    return events
