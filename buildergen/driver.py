"""
driver.py

Responsibility: Run one generation pass over a set of modules.

High-level flow:
1) Collect source files -> `Universe` (`reflect.py`)
2) Validate the configured directive table against the scanned types
3) Per module, in sorted order: filter eligible types, plan builders, render text
4) Write one generated module per input module that has at least one builder

Each module is planned independently from the immutable type graph, so nothing is
shared between modules except the read-only universe.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from buildergen.config import GeneratorConfig
from buildergen.directives import DirectiveResolver
from buildergen.eligibility import EligibilityFilter
from buildergen.emitter import BuilderEmitter, BuilderSpec
from buildergen.naming import ImportTracker
from buildergen.policy import PackageBoundary
from buildergen.reflect import iter_source_files, load_universe, read_modules
from buildergen.renderer import RenderResult, render_module, write_rendered
from buildergen.typegraph import Package, Universe

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratedFile:
    module: str
    path: Path
    text: str
    builders: tuple[str, ...]


def output_path(pkg: Package, config: GeneratorConfig) -> Path:
    """Where the generated module for `pkg` goes."""
    parts = pkg.path.lstrip(".").split(".")
    stem = parts[-1]
    filename = f"{stem}{config.output_suffix}.py"
    if config.output_base is not None:
        return config.output_base.joinpath(*parts[:-1], filename)
    if pkg.source_path is not None:
        return pkg.source_path.parent / filename
    return Path.cwd() / filename


def plan_package(
    universe: Universe,
    pkg: Package,
    *,
    directives: DirectiveResolver,
) -> tuple[list[BuilderSpec], ImportTracker]:
    """Plan builders for every eligible type declared in `pkg`, sorted by type name."""
    boundary = PackageBoundary(pkg.path)
    imports = ImportTracker(boundary)
    eligibility = EligibilityFilter(universe, directives)
    emitter = BuilderEmitter(
        boundary=boundary,
        buildable=eligibility.eligible,
        directives=directives.for_type,
        imports=imports,
    )

    specs = []
    for name in sorted(pkg.types):
        t = pkg.types[name]
        clash = eligibility.builder_clash(t)
        if clash is not None:
            logger.warning("Skipping builder for %s: module %r already declares %s", t, pkg.path, clash)
        if not eligibility.eligible(t):
            continue
        logger.debug("Generating builder for type %s", t)
        specs.append(emitter.spec_for(t))
    return specs, imports


def generate_package(universe: Universe, pkg: Package, *, config: GeneratorConfig) -> GeneratedFile | None:
    directives = DirectiveResolver(namespace=config.tag_namespace, table=config.types)
    specs, imports = plan_package(universe, pkg, directives=directives)
    if not specs:
        logger.debug("Module %r has no buildable types", pkg.path)
        return None

    text = render_module(specs=specs, imports=imports, header=config.header_text)
    return GeneratedFile(
        module=pkg.path,
        path=output_path(pkg, config),
        text=text,
        builders=tuple(s.name for s in specs),
    )


def generate_universe(universe: Universe, *, config: GeneratorConfig) -> list[GeneratedFile]:
    DirectiveResolver(namespace=config.tag_namespace, table=config.types).validate(universe)

    files = []
    for module in sorted(universe.packages):
        logger.debug("Considering module %r", module)
        generated = generate_package(universe, universe.packages[module], config=config)
        if generated is not None:
            logger.info("Module %r: %d builder(s) -> %s", module, len(generated.builders), generated.path)
            files.append(generated)
    return files


def generate(inputs: Iterable[str | Path], *, config: GeneratorConfig) -> list[GeneratedFile]:
    """Scan `inputs` (files or directories) and render builders without writing them."""
    paths = iter_source_files(inputs, skip_suffix=config.output_suffix)
    universe = load_universe(read_modules(paths, source_root=config.source_root))
    return generate_universe(universe, config=config)


def write_files(files: Iterable[GeneratedFile]) -> RenderResult:
    return write_rendered([(f.path, f.text) for f in files])
