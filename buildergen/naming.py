"""
naming.py

Responsibility: Names used in generated code, and the imports they require.
"""

from __future__ import annotations

import re

from buildergen.policy import PackageBoundary
from buildergen.typegraph import Name

_CAMEL_BOUNDARY_1 = re.compile(r"(.)([A-Z][a-z]+)")
_CAMEL_BOUNDARY_2 = re.compile(r"([a-z0-9])([A-Z])")

# Modules whose names never need an import line.
_IMPLICIT_MODULES = {"", "builtins"}


def snake_case(name: str) -> str:
    """`TestBKey` -> `test_b_key`"""
    out = _CAMEL_BOUNDARY_1.sub(r"\1_\2", name)
    out = _CAMEL_BOUNDARY_2.sub(r"\1_\2", out)
    return out.lower()


def builder_name(type_name: str) -> str:
    return f"{type_name}Builder"


def zero_function_name(type_name: str) -> str:
    return f"_zero_{snake_case(type_name)}"


def add_method_name(member: str) -> str:
    return f"add_{member}"


def state_name(member: str, *, plural: bool = False) -> str:
    return f"_{member}_builders" if plural else f"_{member}_builder"


class ImportTracker:
    """
    Records names referenced by generated code.

    Names from the target module are imported at runtime; foreign names are only
    needed for annotations unless marked as runtime imports.
    """

    def __init__(self, boundary: PackageBoundary) -> None:
        self._boundary = boundary
        self._local: set[str] = set()
        self._runtime: dict[str, set[str]] = {}
        self._type_only: dict[str, set[str]] = {}
        self._typing: set[str] = set()

    def add(self, name: Name, *, runtime: bool = False) -> None:
        if name.module in _IMPLICIT_MODULES:
            return
        if name.module == "typing":
            self._typing.add(name.name)
            return
        if self._boundary.is_local_module_name(name.module):
            self._local.add(name.name)
            return
        bucket = self._runtime if runtime else self._type_only
        bucket.setdefault(name.module, set()).add(name.name)

    def add_typing(self, name: str) -> None:
        self._typing.add(name)

    def typing_names(self) -> list[str]:
        names = set(self._typing)
        if self.type_only_lines():
            names.add("TYPE_CHECKING")
        return sorted(names)

    def runtime_lines(self) -> list[str]:
        lines = []
        if self._local:
            lines.append(_from_import(self._boundary.target, self._local))
        lines.extend(_from_import(m, names) for m, names in sorted(self._runtime.items()))
        return lines

    def type_only_lines(self) -> list[str]:
        lines = []
        for module, names in sorted(self._type_only.items()):
            pending = names - self._runtime.get(module, set())
            if pending:
                lines.append(_from_import(module, pending))
        return lines


def _from_import(module: str, names: set[str]) -> str:
    return f"from {module} import {', '.join(sorted(names))}"
