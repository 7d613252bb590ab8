"""
cli.py

Responsibility: CLI entrypoint for builder-gen.

High-level flow (single command `generate`):
1) Load configuration (YAML file, then CLI overrides) -> `GeneratorConfig`
2) Scan input files/directories and plan builders (`driver.py`)
3) Write one generated module per input module, or list them with --dry-run

This module should orchestrate behavior but keep concerns isolated:
- Configuration: `config.py`
- Type graph extraction: `reflect.py`
- Planning and rendering: `driver.py`, `emitter.py`, `renderer.py`
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

from buildergen.config import GeneratorConfig, load_config, load_header
from buildergen.driver import generate, write_files


class CLIError(RuntimeError):
    pass


def _configure_logging(verbosity: int) -> None:
    if verbosity >= 2:
        level = logging.DEBUG
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")


def _resolve_config(args: argparse.Namespace) -> GeneratorConfig:
    config = load_config(args.config) if args.config else GeneratorConfig()

    # CLI overrides
    return config.with_overrides(
        tag_namespace=args.tag_namespace,
        output_suffix=args.output_suffix,
        output_base=Path(args.output_base).resolve() if args.output_base else None,
        source_root=Path(args.source_root).resolve() if args.source_root else None,
        header_text=load_header(args.header_file) if args.header_file else None,
    )


def generate_cmd(args: argparse.Namespace) -> int:
    config = _resolve_config(args)
    if not config.output_suffix and config.output_base is None:
        raise CLIError("An empty --output-suffix requires --output-base (generated files would replace sources)")

    files = generate(args.inputs, config=config)
    if args.dry_run:
        for f in files:
            print(f"{f.path} ({', '.join(f.builders)})")
        return 0

    result = write_files(files)
    logging.getLogger(__name__).info("Wrote %d file(s)", result.written_files)
    return 0


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="builder-gen", description="Generate fluent builder classes for dataclasses")
    sub = p.add_subparsers(dest="command", required=True)

    g = sub.add_parser("generate", help="Generate builder modules for the given source files or directories")
    g.add_argument("inputs", nargs="+", help="Python source files or directories to scan")
    g.add_argument("--config", default=None, help="Path to a YAML configuration file")
    g.add_argument("--source-root", default=None, help="Directory module names are computed from")
    g.add_argument("--output-base", default=None, help="Write generated modules under this directory")
    g.add_argument("--output-suffix", default=None, help="Suffix of generated module names (default: _builder)")
    g.add_argument("--header-file", default=None, help="Boilerplate placed at the top of generated modules")
    g.add_argument("--tag-namespace", default=None, help="Directive namespace (default: builder-gen)")
    g.add_argument("--dry-run", action="store_true", help="List generated modules without writing them")
    g.add_argument("-v", "--verbose", action="count", default=0, help="Increase logging verbosity")

    g.set_defaults(func=generate_cmd)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.verbose)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
