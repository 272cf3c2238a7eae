"""Command-line interface: generate a data module from importable datasets."""

from __future__ import annotations

import argparse
import importlib
import sys
from typing import Any

from genstruct.config import Config
from genstruct.errors import GenstructError
from genstruct.generator import Generator
from genstruct.logger import init_logger


def load_object(spec: str) -> Any:
    """Load the object named by a ``module:attribute`` spec.

    The attribute may be dotted (``blog.data:Catalog.posts``).

    Raises:
        ValueError: If the spec has no attribute part.
        ImportError: If the module cannot be imported.
        AttributeError: If the attribute does not exist.
    """
    module_name, sep, attr = spec.partition(":")
    if not sep or not module_name or not attr:
        raise ValueError(f"Expected module:attribute, got {spec!r}")
    obj: Any = importlib.import_module(module_name)
    for part in attr.split("."):
        obj = getattr(obj, part)
    return obj


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="genstruct",
        description="Generate a Python module declaring dataclass records as static data",
    )
    parser.add_argument(
        "data",
        help="Primary dataset as module:attribute (a list or tuple of dataclass instances)",
    )
    parser.add_argument(
        "refs",
        nargs="*",
        help="Reference datasets as module:attribute",
    )
    parser.add_argument("-o", "--output", default="", help="Output file (default: <type>_generated.py)")
    parser.add_argument("--module-name", default="", help="Dotted name of the generated module")
    parser.add_argument("--type-name", default="", help="Kind name used to name the primary records")
    parser.add_argument("--const-prefix", default="", help="Prefix of the ID constants")
    parser.add_argument("--var-prefix", default="", help="Prefix of the record declarations")
    parser.add_argument(
        "--identifier-fields",
        default="",
        help="Comma-separated fields used to name and match records "
        "(default: id,name,slug,title,key,code)",
    )
    parser.add_argument(
        "--export",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Qualify imported types through their module (default: when -o has a directory)",
    )
    parser.add_argument(
        "--no-sort-keys",
        action="store_true",
        help="Keep dict entries in insertion order",
    )
    parser.add_argument(
        "--path",
        default=".",
        help="Directory prepended to sys.path before loading datasets (default: .)",
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print the generated module instead of writing it",
    )
    parser.add_argument(
        "-v", "--verbosity",
        default="info",
        choices=["debug", "info", "warn", "error"],
        help="Log level (default: info)",
    )
    parser.add_argument(
        "--log-format",
        default="text",
        choices=["text", "json"],
        help="Log format (default: text)",
    )
    parser.add_argument(
        "--log-output",
        default="stderr",
        help="Log destination: stderr, stdout or a file path (default: stderr)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    log = init_logger(args.verbosity, args.log_format, args.log_output)

    if args.path and args.path not in sys.path:
        sys.path.insert(0, args.path)

    try:
        data = load_object(args.data)
        refs = [load_object(spec) for spec in args.refs]
    except (ImportError, AttributeError, ValueError) as e:
        print(f"Error loading data: {e}", file=sys.stderr)
        return 1

    identifier_fields = [f.strip() for f in args.identifier_fields.split(",") if f.strip()]
    config = Config(
        module_name=args.module_name,
        type_name=args.type_name,
        constant_ident=args.const_prefix,
        var_prefix=args.var_prefix,
        output_file=args.output,
        identifier_fields=identifier_fields or None,
        export_mode=args.export,
        sort_map_keys=not args.no_sort_keys,
        logger=log,
    )

    try:
        generator = Generator(config, data, *refs)
        if args.stdout:
            sys.stdout.write(generator.render())
        else:
            path = generator.generate()
            print(f"Wrote {path}", file=sys.stderr)
    except GenstructError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
