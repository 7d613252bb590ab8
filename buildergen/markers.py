"""
markers.py

Responsibility: Annotation markers that model modules use to describe composition.

`Embedded[T]` declares a member as an anonymous composition of `T`: the generated
builder holds a builder for `T` inline and forwards unknown attributes to it.

    @dataclass
    class Outer:
        inner: Embedded[Inner]
        extra: Embedded[Other | None]
"""

from __future__ import annotations

from typing import Annotated, TypeVar

__all__ = ["EMBEDDED", "Embedded"]

T = TypeVar("T")


class _EmbeddedMarker:
    def __repr__(self) -> str:
        return "EMBEDDED"


EMBEDDED = _EmbeddedMarker()

Embedded = Annotated[T, EMBEDDED]
