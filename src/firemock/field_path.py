"""
Field paths and value resolution over a single document.

A field may be addressed by a dotted string (``"address.city"``), an explicit
:class:`FieldPath`, or the :meth:`FieldPath.document_id` sentinel which
targets the document key rather than its body.
"""

from __future__ import annotations

from typing import Any


class _Missing:
    """Marker for a field that is absent from a document."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

_DOCUMENT_ID = "__name__"


class FieldPath:
    """An immutable sequence of field names."""

    __slots__ = ("_segments",)

    def __init__(self, *segments: str) -> None:
        if not segments:
            raise ValueError("FieldPath requires at least one segment")
        for seg in segments:
            if not isinstance(seg, str) or not seg:
                raise ValueError(f"Invalid field path segment: {seg!r}")
        self._segments: tuple[str, ...] = segments

    @classmethod
    def document_id(cls) -> FieldPath:
        """Sentinel path that resolves to the document key."""
        return cls(_DOCUMENT_ID)

    @classmethod
    def from_string(cls, dotted: str) -> FieldPath:
        return cls(*dotted.split("."))

    @property
    def segments(self) -> tuple[str, ...]:
        return self._segments

    def is_document_id(self) -> bool:
        return self._segments == (_DOCUMENT_ID,)

    def is_equal(self, other: object) -> bool:
        return isinstance(other, FieldPath) and other._segments == self._segments

    def __eq__(self, other: object) -> bool:
        return self.is_equal(other)

    def __hash__(self) -> int:
        return hash(self._segments)

    def __repr__(self) -> str:
        return f"FieldPath({', '.join(repr(s) for s in self._segments)})"

    def __str__(self) -> str:
        return ".".join(self._segments)


def to_field_path(field: str | FieldPath) -> FieldPath:
    if isinstance(field, FieldPath):
        return field
    if isinstance(field, str) and field:
        return FieldPath.from_string(field)
    raise ValueError(f"field must be a non-empty string or FieldPath, got {field!r}")


def get_value(data: Any, path: FieldPath) -> Any:
    """Walk *data* along *path*, returning :data:`MISSING` when a hop fails.

    Only mapping keys are followed; list indices are not special.
    """
    node = data
    for seg in path.segments:
        if not isinstance(node, dict) or seg not in node:
            return MISSING
        node = node[seg]
    return node


def resolve_field(doc_id: str, data: Any, field: str | FieldPath) -> Any:
    """Resolve *field* against the record ``(doc_id, data)``."""
    path = to_field_path(field)
    if path.is_document_id():
        return doc_id
    return get_value(data, path)


def values_equal(left: Any, right: Any) -> bool:
    """Deep equality that keeps booleans distinct from numbers."""
    if isinstance(left, bool) or isinstance(right, bool):
        return type(left) is type(right) and left == right
    if isinstance(left, dict) and isinstance(right, dict):
        if left.keys() != right.keys():
            return False
        return all(values_equal(left[k], right[k]) for k in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return False
        return all(values_equal(a, b) for a, b in zip(left, right))
    if left is MISSING or right is MISSING:
        return left is right
    return bool(left == right)
