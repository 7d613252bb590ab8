"""
emitter.py

Responsibility: Decide the shape of the builder generated for one record type.

For every member of an eligible record the emitter picks exactly one action
(setter, add-to-sequence, add-to-mapping, nested accessor, embedded accessor or
skip) and records the names, annotations and zero values the template needs. The
result is a `BuilderSpec`; turning it into text is `renderer.py`'s job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable

from buildergen.classifier import Category, Shape, classify_member
from buildergen.directives import Directives
from buildergen.naming import (
    ImportTracker,
    add_method_name,
    builder_name,
    state_name,
    zero_function_name,
)
from buildergen.policy import PackageBoundary
from buildergen.typegraph import Kind, Member, Name, Type, TypeGraphError, resolve

logger = logging.getLogger(__name__)

# Names every generated builder already uses on its instances or class.
RESERVED_NAMES = frozenset({"build", "_model"})

_BUILTIN_ZEROS = {
    "int": "0",
    "float": "0.0",
    "complex": "0j",
    "str": '""',
    "bool": "False",
    "bytes": 'b""',
    "bytearray": "bytearray()",
    "set": "set()",
    "frozenset": "frozenset()",
    "tuple": "()",
}


class Action(str, Enum):
    SKIP = "skip"
    SETTER = "setter"
    ADD_SEQUENCE = "add_sequence"
    ADD_MAPPING = "add_mapping"
    NESTED = "nested"
    EMBEDDED = "embedded"


@dataclass(frozen=True)
class FieldPlan:
    member: str
    action: Action
    zero: str
    annotation: str = ""
    method: str | None = None
    state: str | None = None
    state_annotation: str = ""
    initial_state: str = ""
    nested: str | None = None
    key_annotation: str = ""
    reference: bool = False
    eager: bool = False


@dataclass(frozen=True)
class BuilderSpec:
    type_name: str
    name: str
    model: str
    zero_func: str
    new_calls: tuple[str, ...]
    fields: tuple[FieldPlan, ...]
    diagnostics: tuple[str, ...] = ()

    @property
    def stateful(self) -> list[FieldPlan]:
        return [f for f in self.fields if f.state is not None]

    @property
    def methods(self) -> list[FieldPlan]:
        return [f for f in self.fields if f.method is not None]

    @property
    def promoted(self) -> list[FieldPlan]:
        return [f for f in self.fields if f.action is Action.EMBEDDED]

    def plan_for(self, member: str) -> FieldPlan:
        for f in self.fields:
            if f.member == member:
                return f
        raise KeyError(member)


class BuilderEmitter:
    """
    Plans builders for the record types of one target module.

    `buildable` tells whether a record type gets a builder of its own; together with
    the package boundary it decides which members receive nested builders.
    """

    def __init__(
        self,
        *,
        boundary: PackageBoundary,
        buildable: Callable[[Type], bool],
        directives: Callable[[Type], Directives],
        imports: ImportTracker,
    ) -> None:
        self._boundary = boundary
        self._buildable = buildable
        self._directives = directives
        self._imports = imports

    def spec_for(self, t: Type) -> BuilderSpec:
        model = resolve(t)
        if model.kind is not Kind.STRUCT:
            raise TypeGraphError(f"Cannot plan a builder for non-record type {t}")

        directives = self._directives(t)
        self._imports.add(model.name, runtime=True)

        diagnostics: list[str] = []
        plans = [self._plan(t, member, directives, diagnostics) for member in model.members]
        used = set(RESERVED_NAMES) | {p.state for p in plans if p.state is not None}
        fields = []
        for plan in plans:
            if plan.method is not None:
                if plan.method in used:
                    logger.warning("Suppressing method %r of %s: name already taken", plan.method, t)
                    diagnostics.append(f"{t}.{plan.member}: method {plan.method!r} collides with another builder attribute")
                    plan = _without_method(plan)
                else:
                    used.add(plan.method)
            fields.append(plan)

        spec = BuilderSpec(
            type_name=t.name.name,
            name=builder_name(t.name.name),
            model=model.name.name,
            zero_func=zero_function_name(t.name.name),
            new_calls=directives.new_call,
            fields=tuple(fields),
            diagnostics=tuple(diagnostics),
        )
        if spec.promoted:
            self._imports.add_typing("Any")
        return spec

    def _has_builder(self, t: Type) -> bool:
        return self._boundary.is_local(t) and self._buildable(t)

    def _plan(self, owner: Type, member: Member, directives: Directives, diagnostics: list[str]) -> FieldPlan:
        shape = classify_member(member)
        name = member.name
        zero = self._zero(shape)

        if shape.category is Category.UNSUPPORTED:
            logger.debug("type unsupported %s %s", owner, name)
            diagnostics.append(f"type unsupported {owner} {name}")
            return FieldPlan(member=name, action=Action.SKIP, zero=zero)

        if shape.category is Category.SEQUENCE:
            element = shape.element
            if element is None or not element.is_record or not self._has_builder(element.effective):
                return self._setter(member, shape, zero)
            nested = builder_name(element.effective.name.name)
            return FieldPlan(
                member=name,
                action=Action.ADD_SEQUENCE,
                zero=zero,
                method=add_method_name(name),
                state=state_name(name, plural=True),
                state_annotation=_optional(f"list[{nested}]", shape.reference),
                initial_state="None" if shape.reference else "[]",
                nested=nested,
                reference=shape.reference,
            )

        if shape.category is Category.MAPPING:
            key, value = shape.key, shape.element
            if (
                key is None
                or value is None
                or key.category is not Category.PRIMITIVE
                or not value.is_record
                or not self._has_builder(value.effective)
            ):
                return self._setter(member, shape, zero)
            nested = builder_name(value.effective.name.name)
            key_annotation = self.annotation(key.declared)
            return FieldPlan(
                member=name,
                action=Action.ADD_MAPPING,
                zero=zero,
                method=add_method_name(name),
                state=state_name(name, plural=True),
                state_annotation=_optional(f"dict[{key_annotation}, {nested}]", shape.reference),
                initial_state="None" if shape.reference else "{}",
                nested=nested,
                key_annotation=key_annotation,
                reference=shape.reference,
            )

        if shape.category is Category.RECORD and self._has_builder(shape.effective):
            nested = builder_name(shape.effective.name.name)
            method: str | None = name
            if shape.embedded and name in directives.embedded_ignore_method:
                method = None
            return FieldPlan(
                member=name,
                action=Action.EMBEDDED if shape.embedded else Action.NESTED,
                zero=zero,
                method=method,
                state=state_name(name),
                state_annotation=_optional(nested, shape.reference),
                initial_state="None" if shape.reference else f"{nested}()",
                nested=nested,
                reference=shape.reference,
                eager=not shape.reference,
            )

        # Primitives, and records that are foreign or have no builder of their own.
        return self._setter(member, shape, zero)

    def _setter(self, member: Member, shape: Shape, zero: str) -> FieldPlan:
        return FieldPlan(
            member=member.name,
            action=Action.SETTER,
            zero=zero,
            annotation=self.annotation(member.type),
            method=member.name,
            reference=shape.reference,
        )

    def _zero(self, shape: Shape) -> str:
        if shape.reference:
            return "None"
        if shape.category is Category.SEQUENCE:
            return "[]"
        if shape.category is Category.MAPPING:
            return "{}"
        if shape.category is Category.PRIMITIVE and shape.effective.kind is Kind.BUILTIN:
            return _BUILTIN_ZEROS.get(shape.effective.name.name, "None")
        if shape.category is Category.RECORD and self._has_builder(shape.effective):
            return f"{zero_function_name(shape.effective.name.name)}()"
        return "None"

    def annotation(self, t: Type) -> str:
        """Render `t` as an annotation, recording the imports it needs."""
        if t.named:
            self._imports.add(t.name)
            return t.name.name
        if t.kind is Kind.POINTER and t.elem is not None:
            return f"{self.annotation(t.elem)} | None"
        if t.kind is Kind.SLICE and t.elem is not None:
            return f"list[{self.annotation(t.elem)}]"
        if t.kind is Kind.MAP and t.key is not None and t.elem is not None:
            return f"dict[{self.annotation(t.key)}, {self.annotation(t.elem)}]"
        self._imports.add(Name("typing", "Any"))
        return "Any"


def _optional(annotation: str, reference: bool) -> str:
    return f"{annotation} | None" if reference else annotation


def _without_method(plan: FieldPlan) -> FieldPlan:
    if plan.state is None:
        return FieldPlan(member=plan.member, action=Action.SKIP, zero=plan.zero)
    return replace(plan, method=None)
