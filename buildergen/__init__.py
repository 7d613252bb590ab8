"""
buildergen package

This package implements builder-gen: a generator of fluent builder classes for
dataclass record types.

Key responsibilities are split across modules:
- `reflect.py`: parse Python sources into a type graph (`typegraph.py`)
- `directives.py`: read `+builder-gen:` directives and the configured side table
- `eligibility.py`: decide which types get a builder
- `classifier.py`: classify member types (primitive, sequence, mapping, record)
- `policy.py`: local vs. foreign module boundary
- `emitter.py`: plan each builder's state, methods and finalizer
- `renderer.py`: render planned builders with the packaged Jinja2 template
- `driver.py`: orchestrate one generation pass
- `cli.py`: CLI entrypoint
- `markers.py`: `Embedded[T]` marker for model modules
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
