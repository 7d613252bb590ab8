"""
eligibility.py

Responsibility: Decide which types get a generated builder.
"""

from __future__ import annotations

import logging

from buildergen.directives import DirectiveResolver
from buildergen.naming import builder_name
from buildergen.typegraph import Kind, Type, TypeGraphError, Universe, resolve

logger = logging.getLogger(__name__)


class EligibilityFilter:
    def __init__(self, universe: Universe, directives: DirectiveResolver) -> None:
        self._universe = universe
        self._directives = directives

    def is_exported(self, t: Type) -> bool:
        pkg = self._universe.package_of(t)
        if pkg is None:
            return not t.name.name.startswith("_")
        return pkg.is_exported(t.name.name)

    def builder_clash(self, t: Type) -> str | None:
        """Name of the generated builder when the module already declares a type by that name."""
        pkg = self._universe.package_of(t)
        name = builder_name(t.name.name)
        if pkg is not None and name in pkg.types:
            return name
        return None

    def reason(self, t: Type) -> str | None:
        """Return why `t` gets no builder, or None when it is eligible."""
        if not t.named:
            return "anonymous type"
        if not self.is_exported(t):
            return "not exported"
        if self._directives.for_type(t).ignored:
            return "ignored by directive"
        clash = self.builder_clash(t)
        if clash is not None:
            return f"builder name {clash} clashes with a declared type"

        if t.kind is Kind.ALIAS:
            try:
                target = resolve(t)
            except TypeGraphError as e:
                return str(e)
            target_reason = self.reason(target)
            if target_reason is not None:
                return f"alias target {target}: {target_reason}"
            return None

        if t.kind is not Kind.STRUCT:
            return f"{t.kind.value} kind"
        if t.frozen:
            return "frozen record"
        return None

    def eligible(self, t: Type) -> bool:
        why = self.reason(t)
        if why is not None:
            logger.debug("Type %s is not buildable: %s", t, why)
            return False
        logger.debug("Type %s is buildable", t)
        return True
