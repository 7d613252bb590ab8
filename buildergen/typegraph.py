"""
typegraph.py

Responsibility: In-memory type graph consumed by the builder engine.

The graph is produced by `reflect.py` (or built by hand in tests) and is treated
as immutable once handed to the engine. Named types carry a first-class
`Name(module, name)`; anonymous wrappers (references, sequences, mappings) point
at their element types.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path


class TypeGraphError(ValueError):
    pass


class TypeCycleError(TypeGraphError):
    pass


class Kind(str, Enum):
    BUILTIN = "builtin"
    STRUCT = "struct"
    ALIAS = "alias"
    POINTER = "pointer"
    SLICE = "slice"
    MAP = "map"
    INTERFACE = "interface"
    FUNC = "func"
    CHAN = "chan"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class Name:
    module: str = ""
    name: str = ""

    def __str__(self) -> str:
        if self.module and self.module != "builtins":
            return f"{self.module}.{self.name}"
        return self.name


@dataclass(eq=False)
class Member:
    name: str
    type: Type
    embedded: bool = False

    @property
    def exported(self) -> bool:
        return not self.name.startswith("_")


@dataclass(eq=False)
class Type:
    kind: Kind
    name: Name = field(default_factory=Name)
    underlying: Type | None = None
    elem: Type | None = None
    key: Type | None = None
    members: list[Member] = field(default_factory=list)
    methods: set[str] = field(default_factory=set)
    comment_lines: list[str] = field(default_factory=list)
    second_closest_comment_lines: list[str] = field(default_factory=list)
    frozen: bool = False

    @property
    def named(self) -> bool:
        return bool(self.name.name)

    def is_primitive(self) -> bool:
        if self.kind in (Kind.BUILTIN, Kind.OPAQUE):
            return True
        return self.kind is Kind.ALIAS and self.underlying is not None and self.underlying.kind is Kind.BUILTIN

    def __str__(self) -> str:
        if self.named:
            return str(self.name)
        if self.kind is Kind.POINTER:
            return f"{self.elem} | None"
        if self.kind is Kind.SLICE:
            return f"list[{self.elem}]"
        if self.kind is Kind.MAP:
            return f"dict[{self.key}, {self.elem}]"
        return f"<{self.kind.value}>"

    def __repr__(self) -> str:
        return f"Type({self.kind.value}, {self})"


@dataclass
class Package:
    """One compilation unit: a Python module and the types it declares."""

    path: str
    source_path: Path | None = None
    types: dict[str, Type] = field(default_factory=dict)
    exports: frozenset[str] | None = None

    def is_exported(self, name: str) -> bool:
        if name.startswith("_"):
            return False
        return self.exports is None or name in self.exports


@dataclass
class Universe:
    packages: dict[str, Package] = field(default_factory=dict)
    foreign: dict[Name, Type] = field(default_factory=dict)

    def package_of(self, t: Type) -> Package | None:
        return self.packages.get(t.name.module)

    def lookup(self, name: Name) -> Type | None:
        pkg = self.packages.get(name.module)
        if pkg is not None and name.name in pkg.types:
            return pkg.types[name.name]
        return self.foreign.get(name)

    def foreign_type(self, name: Name, kind: Kind = Kind.OPAQUE) -> Type:
        """Return the shared placeholder for a type defined outside the scanned modules."""
        t = self.foreign.get(name)
        if t is None:
            t = Type(kind=kind, name=name)
            self.foreign[name] = t
        return t


def resolve(t: Type) -> Type:
    """
    Follow an alias chain to its underlying type.

    Raises TypeCycleError when the chain loops back on itself.
    """
    seen: set[int] = set()
    while t.kind is Kind.ALIAS:
        if id(t) in seen:
            raise TypeCycleError(f"Alias cycle detected at {t}")
        seen.add(id(t))
        if t.underlying is None:
            raise TypeGraphError(f"Alias {t} has no underlying type")
        t = t.underlying
    return t
