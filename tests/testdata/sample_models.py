from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Callable, Optional, Protocol, TypeAlias

from buildergen.markers import Embedded


class Color(Enum):
    RED = "red"
    BLUE = "blue"


class Shape(Protocol):
    def area(self) -> float: ...


@dataclass
class Test:
    key: str
    tas: int
    test_pkg_type: Optional[Decimal]
    test_a: TestA
    test_b: Optional[TestB]
    test_b_list: list[TestB]
    test_b_map: dict[str, TestB]
    test_b_list_pointer: list[Optional[TestB]]
    test_b_alias: TestBAlias
    test_b_alias_map: TestBAliasMap
    test_json_alias: TestJsonAlias
    tags: list[str]
    labels: dict[str, int]
    ratios: dict[str, Fraction]
    color: Color
    origin: Point
    ignored: TestC | None
    shape: Shape
    on_change: Optional[Callable[[], None]]


# +builder-gen:new-call=test1_tag,test2_tag
@dataclass
class TestA:
    test_b: TestB
    calls: list[str]

    def test1_tag(self) -> None:
        self.calls.append("test1")

    def test2_tag(self) -> None:
        self.calls.append("test2")


@dataclass
class TestB:
    """
    +builder-gen:new-call=test_tag
    """

    test_b_key: str

    def test_tag(self) -> None:
        self.test_b_key = "from-tag"


# +builder-gen:ignore=true
@dataclass
class TestC:
    key: int


@dataclass
class TestD:
    key_d: int


@dataclass
class TestE:
    test_d: Embedded[Optional[TestD]]
    key_e: int
    test_g: Optional[TestG]


# +builder-gen:embedded-ignore-method=test_e
@dataclass
class TestF:
    test_e: Embedded[TestE]


@dataclass
class TestG:
    key_g: int


@dataclass(frozen=True)
class Point:
    x: int
    y: int


@dataclass
class _Hidden:
    value: int


TestBAlias: TypeAlias = "list[Optional[TestB]]"
TestBAliasMap: TypeAlias = "dict[str, Optional[TestB]]"
TestJsonAlias: TypeAlias = bytes


@dataclass
class Holder:
    maybe_items: Optional[list[TestG]]
    maybe_map: Optional[dict[str, TestG]]
    codes: set[str]
    pair: tuple[int, ...]


@dataclass
class Leaf:
    key_l: int


@dataclass
class Mid:
    leaf: Embedded[Optional[Leaf]]
    key_m: int


@dataclass
class Top:
    mid: Embedded[Optional[Mid]]
