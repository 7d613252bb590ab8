"""
directives.py

Responsibility: Extract generation directives attached to record types.

Directives come from two places:
- tag lines in a type's documentation, e.g. `# +builder-gen:new-call=init_defaults`
  in the comment block above the class, or the same text inside its docstring
- an optional side table loaded from the YAML configuration (`config.py`)

Tag lines are parsed leniently: anything malformed or unknown is ignored. The side
table is explicit configuration and is validated when generation starts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from buildergen.typegraph import Kind, Type, Universe

logger = logging.getLogger(__name__)

DEFAULT_NAMESPACE = "builder-gen"

IGNORE = "ignore"
NEW_CALL = "new-call"
EMBEDDED_IGNORE_METHOD = "embedded-ignore-method"
KNOWN_DIRECTIVES = (IGNORE, NEW_CALL, EMBEDDED_IGNORE_METHOD)


class DirectiveError(ValueError):
    pass


@dataclass(frozen=True)
class Directives:
    """Directive values for one type. `ignore=None` means the directive was not given."""

    ignore: bool | None = None
    new_call: tuple[str, ...] = ()
    embedded_ignore_method: tuple[str, ...] = ()

    @property
    def ignored(self) -> bool:
        return bool(self.ignore)

    def combine(self, other: Directives | None) -> Directives:
        if other is None:
            return self
        return Directives(
            ignore=self.ignore if other.ignore is None else other.ignore,
            new_call=self.new_call + other.new_call,
            embedded_ignore_method=self.embedded_ignore_method + other.embedded_ignore_method,
        )


def extract_comment_tags(marker: str, lines: Iterable[str]) -> dict[str, list[str]]:
    """
    Collect `<marker>key=value` lines into {key: [values...]} in order of appearance.

    A tag without `=` yields an empty value.
    """
    out: dict[str, list[str]] = {}
    for raw in lines:
        line = raw.strip()
        if not line.startswith(marker):
            continue
        key, _, value = line[len(marker) :].partition("=")
        key = key.strip()
        if not key:
            continue
        out.setdefault(key, []).append(value.strip())
    return out


def _split_values(values: Iterable[str]) -> tuple[str, ...]:
    result: list[str] = []
    for v in values:
        result.extend(part.strip() for part in v.split(",") if part.strip())
    return tuple(result)


def parse_directives(lines: Iterable[str], *, namespace: str = DEFAULT_NAMESPACE) -> Directives:
    tags = extract_comment_tags("+", lines)
    prefix = namespace + ":"

    ignore_values = tags.get(prefix + IGNORE)
    ignore = ignore_values[0] == "true" if ignore_values else None
    return Directives(
        ignore=ignore,
        new_call=_split_values(tags.get(prefix + NEW_CALL, [])),
        embedded_ignore_method=_split_values(tags.get(prefix + EMBEDDED_IGNORE_METHOD, [])),
    )


def type_comment_lines(t: Type) -> list[str]:
    # The more distant block comes first so the type's own lines are read last.
    return [*t.second_closest_comment_lines, *t.comment_lines]


def _string_list(value: Any, *, where: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return _split_values([value])
    if isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value):
        return _split_values(value)
    raise DirectiveError(f"{where} must be a string or a list of strings.")


def parse_table_entry(key: str, raw: Any) -> Directives:
    """Parse one `types:` entry of the configuration into Directives."""
    if raw is None:
        return Directives()
    if not isinstance(raw, dict):
        raise DirectiveError(f"Directives for `{key}` must be a mapping.")

    unknown = sorted(str(k) for k in raw if k not in KNOWN_DIRECTIVES)
    if unknown:
        raise DirectiveError(f"Unknown directive(s) for `{key}`: {', '.join(unknown)}")

    ignore = raw.get(IGNORE)
    if ignore is not None and not isinstance(ignore, bool):
        raise DirectiveError(f"`{key}.{IGNORE}` must be a boolean.")

    return Directives(
        ignore=ignore,
        new_call=_string_list(raw.get(NEW_CALL, []), where=f"`{key}.{NEW_CALL}`"),
        embedded_ignore_method=_string_list(
            raw.get(EMBEDDED_IGNORE_METHOD, []), where=f"`{key}.{EMBEDDED_IGNORE_METHOD}`"
        ),
    )


class DirectiveResolver:
    """Combines tag-line directives with the configured side table."""

    def __init__(self, *, namespace: str = DEFAULT_NAMESPACE, table: dict[str, Directives] | None = None) -> None:
        self._namespace = namespace
        self._table = dict(table or {})

    def for_type(self, t: Type) -> Directives:
        directives = parse_directives(type_comment_lines(t), namespace=self._namespace)
        directives = directives.combine(self._table.get(t.name.name))
        qualified = f"{t.name.module}.{t.name.name}"
        return directives.combine(self._table.get(qualified))

    def validate(self, universe: Universe) -> None:
        """
        Check the side table against the scanned types.

        Unknown type keys are errors; hooks and embedded names that do not match the
        type are reported as warnings.
        """
        targets: dict[str, list[Type]] = {}
        for pkg in universe.packages.values():
            for t in pkg.types.values():
                if t.kind not in (Kind.STRUCT, Kind.ALIAS):
                    continue
                targets.setdefault(t.name.name, []).append(t)
                targets.setdefault(f"{pkg.path}.{t.name.name}", []).append(t)

        for key, directives in self._table.items():
            matches = targets.get(key)
            if not matches:
                raise DirectiveError(f"Directive table refers to unknown type `{key}`")
            for t in matches:
                if t.kind is not Kind.STRUCT:
                    continue
                for method in directives.new_call:
                    if method not in t.methods:
                        logger.warning("Type %s does not define new-call method %r", t, method)
                embedded = {m.name for m in t.members if m.embedded}
                for name in directives.embedded_ignore_method:
                    if name not in embedded:
                        logger.warning("Type %s has no embedded member %r", t, name)
