"""
classifier.py

Responsibility: Classify a member's declared type into the shape that selects its
builder method.

Classification is purely structural: aliases are unwrapped, then one level of
reference (`T | None`) is peeled off and remembered.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from buildergen.typegraph import Kind, Member, Type, TypeGraphError, resolve


class Category(str, Enum):
    UNSUPPORTED = "unsupported"
    PRIMITIVE = "primitive"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    RECORD = "record"


_CATEGORY_BY_KIND = {
    Kind.BUILTIN: Category.PRIMITIVE,
    Kind.OPAQUE: Category.PRIMITIVE,
    Kind.SLICE: Category.SEQUENCE,
    Kind.MAP: Category.MAPPING,
    Kind.STRUCT: Category.RECORD,
}


@dataclass(frozen=True)
class Shape:
    category: Category
    declared: Type
    effective: Type
    reference: bool = False
    embedded: bool = False
    element: Shape | None = None
    key: Shape | None = None

    @property
    def is_record(self) -> bool:
        return self.category is Category.RECORD


def classify(t: Type, *, embedded: bool = False) -> Shape:
    declared = resolve(t)
    effective = declared
    reference = False
    if declared.kind is Kind.POINTER:
        if declared.elem is None:
            raise TypeGraphError(f"Reference type {declared!r} has no element type")
        reference = True
        effective = resolve(declared.elem)

    category = _CATEGORY_BY_KIND.get(effective.kind, Category.UNSUPPORTED)
    element: Shape | None = None
    key: Shape | None = None
    if category is Category.SEQUENCE:
        element = _classify_part(effective.elem)
    elif category is Category.MAPPING:
        key = _classify_part(effective.key)
        element = _classify_part(effective.elem)

    return Shape(
        category=category,
        declared=declared,
        effective=effective,
        reference=reference,
        embedded=embedded and category is Category.RECORD,
        element=element,
        key=key,
    )


def _classify_part(t: Type | None) -> Shape:
    if t is None:
        raise TypeGraphError("Container type is missing its element type")
    return classify(t)


def classify_member(member: Member) -> Shape:
    return classify(member.type, embedded=member.embedded)
