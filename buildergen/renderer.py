"""
renderer.py

Responsibility: Turn planned builders into module source text and write it out.

Rules:
- The emitter decides what to generate; this module only lays it out.
- Rendering uses the packaged Jinja2 template `templates/builder.py.j2`.
- Output is written with `\\n` newlines for stable cross-platform results.

This module intentionally does NOT know about type classification or directives.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from jinja2 import Environment, PackageLoader, StrictUndefined, TemplateError

from buildergen.emitter import BuilderSpec
from buildergen.naming import ImportTracker

TEMPLATE_NAME = "builder.py.j2"
GENERATED_MARKER = "# Code generated by builder-gen. DO NOT EDIT."


class RenderError(RuntimeError):
    pass


@dataclass(frozen=True)
class RenderResult:
    written_files: int


def _environment() -> Environment:
    return Environment(
        loader=PackageLoader("buildergen", "templates"),
        autoescape=False,
        undefined=StrictUndefined,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )


def render_module(*, specs: Sequence[BuilderSpec], imports: ImportTracker, header: str = "") -> str:
    """Render one generated module holding the builders in `specs`."""
    try:
        template = _environment().get_template(TEMPLATE_NAME)
        return template.render(
            header=header,
            marker=GENERATED_MARKER,
            typing_names=imports.typing_names(),
            runtime_imports=imports.runtime_lines(),
            type_only_imports=imports.type_only_lines(),
            specs=list(specs),
        )
    except TemplateError as e:
        raise RenderError(f"Failed rendering builders: {', '.join(s.name for s in specs)}") from e


def write_rendered(files: Sequence[tuple[Path, str]]) -> RenderResult:
    """Write rendered text to each path, creating parent directories as needed."""
    for path, text in files:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8", newline="\n")
    return RenderResult(written_files=len(files))
