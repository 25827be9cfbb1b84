# src/igconvert/errors.py
from __future__ import annotations
from typing import Optional


class ConversionError(Exception):
    """Base class for every terminal failure of a conversion run."""


class InputUnreadable(ConversionError):
    """Input path missing/unopenable, or the document does not parse."""


class MalformedInput(ConversionError, ValueError):
    """
    Document parses but has the wrong shape: missing required attribute,
    parallel track arrays of different lengths, numPolyline not summing
    to the number of polyline points.
    """


DataInconsistency = MalformedInput


class ParseError(MalformedInput):
    """Non-numeric token where a number is expected."""

    def __init__(self, field: str, token: str, track_index: Optional[int] = None):
        self.field = field
        self.token = token
        self.track_index = track_index
        where = f" (track {track_index})" if track_index is not None else ""
        super().__init__(f"cannot parse {token!r} in {field}{where}")


class TypeMismatch(ConversionError, TypeError):
    """Value assigned to a store property does not match its declared type."""

    def __init__(
        self,
        collection: str,
        prop: str,
        expected: str,
        value,
        track_index: Optional[int] = None,
    ):
        self.collection = collection
        self.prop = prop
        self.expected = expected
        self.value = value
        self.track_index = track_index
        where = f" (track {track_index})" if track_index is not None else ""
        super().__init__(
            f"{collection}.{prop} expects {expected}, got {type(value).__name__} {value!r}{where}"
        )


class StoreError(ConversionError, RuntimeError):
    """Store misuse: duplicate property, foreign handle, write after freeze."""
