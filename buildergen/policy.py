"""
policy.py

Responsibility: Decide whether a type belongs to the module being generated for.

Only local record types get nested builders; anything defined elsewhere is set as
an opaque value, since no builder can be assumed to exist for it.
"""

from __future__ import annotations

from buildergen.typegraph import Type


def is_local_module(module: str, target: str) -> bool:
    """
    True when `module` names `target`.

    Relative spellings left unresolved by the front end (`.models`, `..pkg.models`)
    match when their dotted tail equals the end of the target path.
    """
    if module == target:
        return True
    if module.startswith("."):
        bare = module.lstrip(".")
        return bool(bare) and (target == bare or target.endswith("." + bare))
    return False


class PackageBoundary:
    def __init__(self, target: str) -> None:
        self.target = target

    def is_local_module_name(self, module: str) -> bool:
        return is_local_module(module, self.target)

    def is_local(self, t: Type) -> bool:
        if not t.named:
            return True
        return is_local_module(t.name.module, self.target)

    def is_foreign(self, t: Type) -> bool:
        return not self.is_local(t)
