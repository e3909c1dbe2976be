"""Range-based patch application.

Operations in one batch are applied in order, each against the result of the
previous one, the way editors emit multi-cursor edits. Coordinates are
1-indexed; the end column is exclusive.
"""
from typing import Sequence

from livecode.core.exceptions import InvalidRangeError
from livecode.schemas.protocol import RangeEdit

LINE_SEPARATOR = "\n"


def apply_patch(value: str, operations: Sequence[RangeEdit]) -> str:
    """Apply range edits to a text value and return the new value.

    Raises:
        InvalidRangeError: an edit references a line or column outside the
            document as it stands when that edit is applied
    """
    if not operations:
        return value

    lines = value.split(LINE_SEPARATOR)  # "" -> [""]

    for index, operation in enumerate(operations):
        _check_range(lines, operation, index)
        edit_range = operation.range

        head = lines[edit_range.start_line - 1][:edit_range.start_column - 1]
        tail = lines[edit_range.end_line - 1][edit_range.end_column - 1:]
        replacement = (head + operation.text + tail).split(LINE_SEPARATOR)

        lines[edit_range.start_line - 1:edit_range.end_line] = replacement

    return LINE_SEPARATOR.join(lines)


def _check_range(lines: list[str], operation: RangeEdit, index: int) -> None:
    edit_range = operation.range
    line_count = len(lines)

    if edit_range.end_line > line_count:
        raise InvalidRangeError(
            f"Edit {index} ends on line {edit_range.end_line} but the document has {line_count} line(s)",
            index,
        )
    if (edit_range.start_line, edit_range.start_column) > (edit_range.end_line, edit_range.end_column):
        raise InvalidRangeError(f"Edit {index} starts after it ends", index)

    # Column n addresses the gap before character n, so len + 1 is the end of line
    start_limit = len(lines[edit_range.start_line - 1]) + 1
    if edit_range.start_column > start_limit:
        raise InvalidRangeError(
            f"Edit {index} starts at column {edit_range.start_column} of a {start_limit - 1} character line",
            index,
        )
    end_limit = len(lines[edit_range.end_line - 1]) + 1
    if edit_range.end_column > end_limit:
        raise InvalidRangeError(
            f"Edit {index} ends at column {edit_range.end_column} of a {end_limit - 1} character line",
            index,
        )
