from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Union

"""Raw cell values as produced by the File Ingestor.

A spreadsheet cell is either text, a number, or empty. Every coercion
function in ``baseoff_import.normalize`` dispatches on these three types so a
number is never silently stringified (e.g. ``12345.0`` read back as an NB).
"""

__all__ = [
    "Text",
    "Number",
    "Empty",
    "EMPTY",
    "Cell",
    "RawRow",
    "to_cell",
]


@dataclass(frozen=True)
class Text:
    value: str


@dataclass(frozen=True)
class Number:
    value: float

    def as_plain_str(self) -> str:
        """Render integral floats without the trailing ``.0``."""
        if self.value.is_integer():
            return str(int(self.value))
        return repr(self.value)


@dataclass(frozen=True)
class Empty:
    pass


EMPTY = Empty()

Cell = Union[Text, Number, Empty]
RawRow = tuple[Cell, ...]


def to_cell(value: Any) -> Cell:
    """Convert a value decoded by pandas into a tagged cell.

    Date/datetime values (openpyxl returns them for date-formatted cells) become
    ``YYYY-MM-DD`` text; booleans become text ``"TRUE"``/``"FALSE"`` like a
    spreadsheet displays them.
    """
    if value is None:
        return EMPTY
    if isinstance(value, bool):
        return Text("TRUE" if value else "FALSE")
    if isinstance(value, (int, float)):
        f = float(value)
        if math.isnan(f):
            return EMPTY
        return Number(f)
    if isinstance(value, (datetime, date)):
        # pandas.NaT is a datetime subclass whose strftime raises
        try:
            return Text(value.strftime("%Y-%m-%d"))
        except ValueError:
            return EMPTY
    if isinstance(value, str):
        return Text(value) if value != "" else EMPTY
    # numpy scalars and anything else exposing __float__
    try:
        f = float(value)
    except (TypeError, ValueError):
        text = str(value)
        return Text(text) if text != "" else EMPTY
    if math.isnan(f):
        return EMPTY
    return Number(f)
