"""
reflect.py

Responsibility: Build the type graph from Python source files.

Sources are parsed with `ast`; nothing is imported or executed. Three passes over
all modules keep cross-module references resolvable:
1) declare every top-level class and type alias as a named `Type`
2) resolve alias targets and dataclass members
3) merge members inherited from base dataclasses

Record types are dataclasses. `Optional[T]` / `T | None` are references, `list`-like
and `dict`-like generics are sequences and mappings, `Embedded[T]` marks a member as
an anonymous composition.
"""

from __future__ import annotations

import ast
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

from buildergen.typegraph import Kind, Member, Name, Package, Type, Universe

logger = logging.getLogger(__name__)


class ReflectError(ValueError):
    pass


_GENERIC_MODULES = {"typing", "typing_extensions", "collections.abc", "builtins", "dataclasses"}

_BUILTIN_SCALARS = {
    "int",
    "float",
    "complex",
    "str",
    "bool",
    "bytes",
    "bytearray",
    "object",
    "set",
    "frozenset",
    "tuple",
}
# typing spellings of builtin containers; these are plain values, not sequences
_BUILTIN_GENERICS = {"Set": "set", "FrozenSet": "frozenset", "Tuple": "tuple", "AbstractSet": "set"}
_SEQUENCE_GENERICS = {"list", "List", "Sequence", "MutableSequence"}
_MAPPING_GENERICS = {"dict", "Dict", "Mapping", "MutableMapping"}
_FUNC_GENERICS = {"Callable"}
_CHAN_GENERICS = {"Iterator", "Generator", "AsyncIterator", "AsyncGenerator"}
_QUEUE_MODULES = {"queue", "asyncio", "multiprocessing"}
_QUEUE_NAMES = {"Queue", "SimpleQueue", "LifoQueue", "PriorityQueue", "JoinableQueue"}
_NOT_MEMBERS = {"ClassVar", "InitVar", "KW_ONLY"}
_INTERFACE_BASES = {"Protocol", "ABC"}

_ANY = Type(kind=Kind.BUILTIN, name=Name("typing", "Any"))


@dataclass
class SourceModule:
    name: str
    source: str
    path: Path | None = None

    @property
    def package(self) -> str:
        """Package used to resolve relative imports."""
        if self.path is not None and self.path.name == "__init__.py":
            return self.name
        return self.name.rpartition(".")[0]


@dataclass
class _Scope:
    module: SourceModule
    tree: ast.Module
    lines: list[str]
    imports: dict[str, tuple[str, str]] = field(default_factory=dict)
    module_aliases: dict[str, str] = field(default_factory=dict)
    classes: dict[str, ast.ClassDef] = field(default_factory=dict)
    aliases: dict[str, ast.expr] = field(default_factory=dict)
    bases: dict[str, list[Type]] = field(default_factory=dict)


def module_name_for(path: Path, source_root: Path | None = None) -> str:
    """Dotted module name of `path` relative to `source_root` (or just its stem)."""
    path = path.resolve()
    parts: list[str]
    if source_root is not None:
        try:
            rel = path.relative_to(source_root.resolve())
        except ValueError:
            rel = Path(path.name)
        parts = list(rel.with_suffix("").parts)
    else:
        parts = [path.stem]
    if len(parts) > 1 and parts[-1] == "__init__":
        parts = parts[:-1]
    return ".".join(parts)


def iter_source_files(inputs: Iterable[str | Path], *, skip_suffix: str = "") -> list[Path]:
    """
    Expand files and directories into Python source files, in sorted order.

    Hidden directories, `__pycache__` and files ending with `skip_suffix` + `.py`
    (previously generated output) are skipped.
    """
    found: set[Path] = set()
    for raw in inputs:
        path = Path(raw)
        if path.is_file():
            found.add(path.resolve())
            continue
        if not path.is_dir():
            raise ReflectError(f"Input does not exist: {path}")
        for root, dirs, filenames in os.walk(path):
            dirs[:] = [d for d in dirs if not d.startswith(".") and d != "__pycache__"]
            for name in filenames:
                if name.endswith(".py"):
                    found.add((Path(root) / name).resolve())
    files = sorted(found, key=lambda p: str(p).replace(os.sep, "/"))
    if skip_suffix:
        files = [p for p in files if not p.name.endswith(f"{skip_suffix}.py")]
    return files


def read_modules(paths: Iterable[Path], *, source_root: Path | None = None) -> list[SourceModule]:
    modules = []
    for path in paths:
        try:
            source = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ReflectError(f"Cannot read source file: {path}") from e
        modules.append(SourceModule(name=module_name_for(path, source_root), source=source, path=path))
    return modules


def load_universe(modules: Iterable[SourceModule]) -> Universe:
    universe = Universe()
    scopes: list[_Scope] = []
    for module in modules:
        try:
            tree = ast.parse(module.source, filename=str(module.path or module.name))
        except SyntaxError as e:
            raise ReflectError(f"Cannot parse module {module.name}: {e}") from e
        scope = _Scope(module=module, tree=tree, lines=module.source.splitlines())
        universe.packages[module.name] = _declare(scope)
        scopes.append(scope)

    for scope in scopes:
        _Resolver(universe, scope).fill()
    bases: dict[int, list[Type]] = {}
    for scope in scopes:
        pkg = universe.packages[scope.module.name]
        for name, found in scope.bases.items():
            bases[id(pkg.types[name])] = found
    done: set[int] = set()
    for pkg in universe.packages.values():
        for t in pkg.types.values():
            if t.kind is Kind.STRUCT:
                _merge_inherited(t, bases=bases, done=done, visiting=set())
    return universe


def load_sources(sources: dict[str, str]) -> Universe:
    """Convenience for tests and tools: {module name: source text} -> Universe."""
    return load_universe(SourceModule(name=name, source=text) for name, text in sources.items())


def _declare(scope: _Scope) -> Package:
    module = scope.module
    pkg = Package(path=module.name, source_path=module.path)
    scope.classes = {n.name: n for n in scope.tree.body if isinstance(n, ast.ClassDef)}

    for node in scope.tree.body:
        if isinstance(node, ast.Import):
            for alias in node.names:
                if alias.asname:
                    scope.module_aliases[alias.asname] = alias.name
                else:
                    head = alias.name.split(".")[0]
                    scope.module_aliases[head] = head
        elif isinstance(node, ast.ImportFrom):
            source = _absolute_module(node, module)
            for alias in node.names:
                scope.imports[alias.asname or alias.name] = (source, alias.name)
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            if node.value is not None and _is_type_alias_annotation(node.annotation):
                scope.aliases[node.target.id] = node.value
        elif isinstance(node, ast.Assign) and len(node.targets) == 1 and isinstance(node.targets[0], ast.Name):
            target = node.targets[0].id
            if target == "__all__":
                pkg.exports = _string_sequence(node.value)
            elif _looks_like_type(node.value, scope):
                scope.aliases[target] = node.value
        elif isinstance(node, getattr(ast, "TypeAlias", ())):
            # `type X = ...` statements (Python 3.12+).
            scope.aliases[node.name.id] = node.value  # type: ignore[attr-defined]

    for name, cls in scope.classes.items():
        kind, frozen = _class_kind(cls)
        t = Type(kind=kind, name=Name(module.name, name), frozen=frozen)
        t.comment_lines = _docstring_lines(cls)
        t.second_closest_comment_lines = _comment_block_above(cls, scope.lines)
        t.methods = {n.name for n in cls.body if isinstance(n, (ast.FunctionDef, ast.AsyncFunctionDef))}
        pkg.types[name] = t
    for name, value in scope.aliases.items():
        if name in pkg.types:
            continue
        pkg.types[name] = Type(kind=Kind.ALIAS, name=Name(module.name, name))
    return pkg


def _absolute_module(node: ast.ImportFrom, module: SourceModule) -> str:
    target = node.module or ""
    if not node.level:
        return target
    package_parts = module.package.split(".") if module.package else []
    up = node.level - 1
    if up >= len(package_parts):
        # Without enough package context the relative spelling is kept as-is.
        return "." * node.level + target
    base = package_parts[: len(package_parts) - up]
    return ".".join([*base, target] if target else base)


def _is_type_alias_annotation(node: ast.expr) -> bool:
    return _last_name(node) == "TypeAlias"


def _last_name(node: ast.expr) -> str | None:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return None


def _string_sequence(node: ast.expr) -> frozenset[str] | None:
    if isinstance(node, (ast.List, ast.Tuple)):
        values = [e.value for e in node.elts if isinstance(e, ast.Constant) and isinstance(e.value, str)]
        return frozenset(values)
    return None


def _looks_like_type(node: ast.expr, scope: _Scope) -> bool:
    """Heuristic for `X = <type expression>` assignments without a TypeAlias annotation."""
    if isinstance(node, ast.Subscript):
        return _looks_like_type(node.value, scope)
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _looks_like_type(node.left, scope) and (
            _looks_like_type(node.right, scope) or _is_none(node.right)
        )
    name = _last_name(node)
    if name is None:
        return False
    if isinstance(node, ast.Name):
        if name in scope.classes or name in scope.aliases or name in _BUILTIN_SCALARS:
            return True
        if name in _SEQUENCE_GENERICS or name in _MAPPING_GENERICS:
            return True
        if name in scope.imports:
            module, original = scope.imports[name]
            return module in _GENERIC_MODULES or original[:1].isupper()
        return False
    return name[:1].isupper()


def _is_none(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and node.value is None


def _class_kind(cls: ast.ClassDef) -> tuple[Kind, bool]:
    for deco in cls.decorator_list:
        target = deco.func if isinstance(deco, ast.Call) else deco
        if _last_name(target) == "dataclass":
            frozen = isinstance(deco, ast.Call) and any(
                kw.arg == "frozen" and isinstance(kw.value, ast.Constant) and kw.value.value is True
                for kw in deco.keywords
            )
            return Kind.STRUCT, frozen

    base_names = {_last_name(b.value if isinstance(b, ast.Subscript) else b) for b in cls.bases}
    if base_names & _INTERFACE_BASES:
        return Kind.INTERFACE, False
    if any(kw.arg == "metaclass" and _last_name(kw.value) == "ABCMeta" for kw in cls.keywords):
        return Kind.INTERFACE, False
    return Kind.OPAQUE, False


def _docstring_lines(cls: ast.ClassDef) -> list[str]:
    doc = ast.get_docstring(cls)
    return doc.splitlines() if doc else []


def _comment_block_above(cls: ast.ClassDef, lines: list[str]) -> list[str]:
    first = min([cls.lineno, *(d.lineno for d in cls.decorator_list)])
    block: list[str] = []
    i = first - 2
    while i >= 0:
        text = lines[i].strip()
        if not text.startswith("#"):
            break
        block.append(text[1:].strip())
        i -= 1
    block.reverse()
    return block


class _Resolver:
    """Pass 2 for one module: alias targets and dataclass members."""

    def __init__(self, universe: Universe, scope: _Scope) -> None:
        self.universe = universe
        self.scope = scope
        self.pkg = universe.packages[scope.module.name]

    def fill(self) -> None:
        for name, value in self.scope.aliases.items():
            t = self.pkg.types[name]
            if t.kind is Kind.ALIAS:
                t.underlying = self.type_of(value)
        for name, cls in self.scope.classes.items():
            t = self.pkg.types[name]
            bases = [self.type_of(b) for b in cls.bases if _last_name(b) not in (None, "object")]
            self.scope.bases[name] = [b for b in bases if b.kind is Kind.STRUCT]
            if t.kind is Kind.STRUCT:
                t.members = self._members(cls)

    def _members(self, cls: ast.ClassDef) -> list[Member]:
        members = []
        for node in cls.body:
            if not isinstance(node, ast.AnnAssign) or not isinstance(node.target, ast.Name):
                continue
            annotation = _unquote(node.annotation)
            head = annotation.value if isinstance(annotation, ast.Subscript) else annotation
            if _last_name(head) in _NOT_MEMBERS:
                continue
            embedded, inner = _embedded(annotation)
            members.append(Member(name=node.target.id, type=self.type_of(inner), embedded=embedded))
        return members

    def qualname(self, node: ast.expr) -> Name | None:
        if isinstance(node, ast.Name):
            ident = node.id
            if ident in self.scope.imports:
                module, original = self.scope.imports[ident]
                return Name(module, original)
            if ident in self.pkg.types:
                return Name(self.pkg.path, ident)
            if ident in _BUILTIN_SCALARS or ident in _SEQUENCE_GENERICS or ident in _MAPPING_GENERICS:
                return Name("builtins", ident)
            return Name("", ident)
        if isinstance(node, ast.Attribute):
            parts: list[str] = []
            cur: ast.expr = node
            while isinstance(cur, ast.Attribute):
                parts.append(cur.attr)
                cur = cur.value
            if not isinstance(cur, ast.Name):
                return None
            parts.reverse()
            head = cur.id
            if head in self.scope.module_aliases:
                module = self.scope.module_aliases[head]
            elif head in self.scope.imports:
                module, original = self.scope.imports[head]
                module = f"{module}.{original}" if module else original
            else:
                module = head
            return Name(".".join([module, *parts[:-1]]), parts[-1])
        return None

    def type_of(self, node: ast.expr) -> Type:
        node = _unquote(node)
        if _is_none(node):
            return Type(kind=Kind.OPAQUE, name=Name("builtins", "None"))

        if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
            return self._union(_flatten_union(node))

        if isinstance(node, ast.Subscript):
            return self._subscript(node)

        name = self.qualname(node)
        if name is None:
            return Type(kind=Kind.OPAQUE)
        return self._named(name)

    def _named(self, name: Name) -> Type:
        if name.module in _GENERIC_MODULES:
            if name.name == "Any":
                return _ANY
            if name.name in _BUILTIN_SCALARS:
                return Type(kind=Kind.BUILTIN, name=Name("builtins", name.name))
            if name.name in _BUILTIN_GENERICS:
                return Type(kind=Kind.BUILTIN, name=Name("builtins", _BUILTIN_GENERICS[name.name]))
            if name.name in _SEQUENCE_GENERICS:
                return Type(kind=Kind.SLICE, elem=_ANY)
            if name.name in _MAPPING_GENERICS:
                return Type(kind=Kind.MAP, key=_ANY, elem=_ANY)
            if name.name in _FUNC_GENERICS:
                return Type(kind=Kind.FUNC)
            if name.name in _CHAN_GENERICS:
                return Type(kind=Kind.CHAN)
        if name.module in _QUEUE_MODULES and name.name in _QUEUE_NAMES:
            return Type(kind=Kind.CHAN, name=name)

        found = self.universe.lookup(name)
        if found is not None:
            return found
        if not name.module:
            logger.debug("Unresolved name %r in module %s", name.name, self.pkg.path)
        return self.universe.foreign_type(name)

    def _subscript(self, node: ast.Subscript) -> Type:
        base = self.qualname(node.value)
        args = list(node.slice.elts) if isinstance(node.slice, ast.Tuple) else [node.slice]
        generic = base.name if base is not None and base.module in _GENERIC_MODULES | {""} else None

        if generic == "Optional":
            return Type(kind=Kind.POINTER, elem=self.type_of(args[0]))
        if generic == "Union":
            return self._union(args)
        if generic == "Annotated":
            return self.type_of(args[0])
        if generic in _SEQUENCE_GENERICS:
            return Type(kind=Kind.SLICE, elem=self.type_of(args[0]))
        if generic in _MAPPING_GENERICS and len(args) == 2:
            return Type(kind=Kind.MAP, key=self.type_of(args[0]), elem=self.type_of(args[1]))
        if generic in _FUNC_GENERICS:
            return Type(kind=Kind.FUNC)
        if generic in _CHAN_GENERICS:
            return Type(kind=Kind.CHAN)
        if generic in _BUILTIN_SCALARS or generic in _BUILTIN_GENERICS:
            return self._named(Name("builtins", generic))
        if base is not None and generic is None:
            named = self._named(base)
            if named.kind in (Kind.CHAN, Kind.INTERFACE):
                return named
        return Type(kind=Kind.OPAQUE)

    def _union(self, args: list[ast.expr]) -> Type:
        rest = [a for a in args if not _is_none(_unquote(a))]
        if len(rest) == 1 and len(rest) < len(args):
            return Type(kind=Kind.POINTER, elem=self.type_of(rest[0]))
        return Type(kind=Kind.OPAQUE)


def _unquote(node: ast.expr) -> ast.expr:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        try:
            return ast.parse(node.value, mode="eval").body
        except SyntaxError:
            return node
    return node


def _flatten_union(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return [*_flatten_union(node.left), *_flatten_union(node.right)]
    return [node]


def _embedded(annotation: ast.expr) -> tuple[bool, ast.expr]:
    """Detect `Embedded[T]` / `Annotated[T, EMBEDDED]`; return (embedded, inner annotation)."""
    if not isinstance(annotation, ast.Subscript):
        return False, annotation
    head = _last_name(annotation.value)
    if head == "Embedded":
        return True, annotation.slice
    if head == "Annotated" and isinstance(annotation.slice, ast.Tuple):
        inner, *meta = annotation.slice.elts
        if any(_last_name(m) == "EMBEDDED" for m in meta):
            return True, inner
    return False, annotation


def _merge_inherited(t: Type, *, bases: dict[int, list[Type]], done: set[int], visiting: set[int]) -> list[Member]:
    """Prepend members of base dataclasses, following dataclass field ordering."""
    if id(t) in done or id(t) in visiting:
        return t.members
    visiting.add(id(t))

    merged: dict[str, Member] = {}
    for base in reversed(bases.get(id(t), [])):
        for m in _merge_inherited(base, bases=bases, done=done, visiting=visiting):
            merged[m.name] = m
    for m in t.members:
        merged[m.name] = m
    t.members = list(merged.values())

    visiting.discard(id(t))
    done.add(id(t))
    return t.members
