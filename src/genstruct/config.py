"""Generator configuration and inference of missing settings."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Callable

from genstruct.datasets import validate_sequence

DEFAULT_IDENTIFIER_FIELDS: tuple[str, ...] = ("id", "name", "slug", "title", "key", "code")
DEFAULT_MODULE_NAME = "generated"
OUTPUT_SUFFIX = "_generated.py"


@dataclass
class Config:
    """Options for one generation run.

    Empty strings and ``None`` mean "infer": see :func:`enhance_config`.

    Attributes:
        module_name: Dotted name of the generated module. Types defined in
            this module are treated as local and exported into the output.
        type_name: Kind name used for the primary dataset's naming
            (declaration prefix, constants, collection). Naming only.
        constant_ident: Prefix of the generated ID constants.
        var_prefix: Prefix of the generated record declarations.
        output_file: Path of the module to write.
        identifier_fields: Field names tried, in order, to name records and
            to match relationship sources against.
        custom_var_name_fn: Overrides the identifier policy when set.
        export_mode: Qualify non-local types through module imports.
            ``None`` infers it from a ``/`` in ``output_file``.
        sort_map_keys: Emit dict entries in key order where keys allow it.
        logger: Logger used by the run instead of the ``genstruct`` logger.
    """

    module_name: str = ""
    type_name: str = ""
    constant_ident: str = ""
    var_prefix: str = ""
    output_file: str = ""
    identifier_fields: list[str] | None = None
    custom_var_name_fn: Callable[[Any], str] | None = None
    export_mode: bool | None = None
    sort_map_keys: bool = True
    logger: logging.Logger | None = None

    @property
    def is_export_mode(self) -> bool:
        if self.export_mode is not None:
            return self.export_mode
        return "/" in self.output_file

    def infer(self, data: Any) -> Config:
        """Return a copy with every missing setting inferred from ``data``."""
        return enhance_config(self, data)


def module_name_for(output_file: str) -> str:
    """Derive a dotted module name from an output path.

        >>> module_name_for("./out/blog_data.py")
        'out.blog_data'
    """
    path = PurePosixPath(output_file.replace("\\", "/"))
    if path.suffix == ".py":
        path = path.with_suffix("")
    parts = [p for p in path.parts if p not in (".", "..", "/")]
    if path.is_absolute() and parts:
        parts = parts[-1:]
    if not parts or not all(p.isidentifier() for p in parts):
        stem = path.name
        return stem if stem.isidentifier() else DEFAULT_MODULE_NAME
    return ".".join(parts)


def enhance_config(config: Config, data: Any) -> Config:
    """Validate the primary dataset and fill in every missing setting.

    The caller's config is not modified.

    Raises:
        GenstructError: If ``data`` is not a valid dataset.
    """
    record_type = validate_sequence(data, "data")

    type_name = config.type_name or record_type.__name__
    output_file = config.output_file or type_name.lower() + OUTPUT_SUFFIX
    identifier_fields = (
        list(config.identifier_fields)
        if config.identifier_fields
        else list(DEFAULT_IDENTIFIER_FIELDS)
    )
    return dataclasses.replace(
        config,
        type_name=type_name,
        constant_ident=config.constant_ident or type_name,
        var_prefix=config.var_prefix or type_name,
        output_file=output_file,
        module_name=config.module_name or module_name_for(output_file),
        identifier_fields=identifier_fields,
    )
