"""Relationship fields: declaration, binding analysis and resolution."""

from __future__ import annotations

import ast
import dataclasses
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from genstruct.datasets import Dataset
from genstruct.naming import NamingTable
from genstruct.shapes import (
    TAG_KEY,
    FieldInfo,
    ShapeKind,
    element_type,
    is_frozen,
    record_fields,
    type_shape,
    unwrap_optional,
)
from genstruct.types import TypeRenderer

logger = logging.getLogger(__name__)


class _Skipped:
    def __repr__(self) -> str:
        return "SKIPPED"


# Returned for tagged fields whose shape cannot be resolved
SKIPPED: Any = _Skipped()


def ref(
    source: str,
    *,
    default: Any = dataclasses.MISSING,
    default_factory: Any = dataclasses.MISSING,
    metadata: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> Any:
    """Declare a relationship field resolved from the field named ``source``.

    A thin wrapper over :func:`dataclasses.field` storing ``source`` in the
    field metadata::

        @dataclass
        class Post:
            id: str
            tag_slugs: list[str]
            tags: list[Tag] = ref("tag_slugs", default_factory=list)
    """
    meta = dict(metadata or {})
    meta[TAG_KEY] = source
    return dataclasses.field(
        default=default, default_factory=default_factory, metadata=meta, **kwargs
    )


@dataclass(frozen=True)
class ReferenceBinding:
    """A resolvable relationship between a tagged field and its source field."""

    owner: str
    field: str
    source: str
    target_kind: str
    target_type: type
    many: bool
    pointer: bool


def _is_string_sequence(tp: Any) -> bool:
    shape = type_shape(tp)
    if shape not in (ShapeKind.LIST, ShapeKind.TUPLE):
        return False
    return type_shape(element_type(tp)) is ShapeKind.STRING


def binding_for(
    owner: type,
    info: FieldInfo,
    fields: Sequence[FieldInfo] | None = None,
) -> ReferenceBinding | None:
    """Analyze a tagged field, or return ``None`` if its shape is unsupported.

    Supported shapes are a ``str`` source with a record (or optional record)
    target, and a ``list[str]``/``tuple[str, ...]`` source with a list of
    records (or of optional records) target.
    """
    if not info.tag:
        return None
    if fields is None:
        fields = record_fields(owner)
    source = next((f for f in fields if f.name == info.tag), None)
    if source is None:
        return None

    target, _ = unwrap_optional(info.annotation)
    target_shape = type_shape(target)
    source_shape = type_shape(unwrap_optional(source.annotation)[0])

    if target_shape is ShapeKind.RECORD and source_shape is ShapeKind.STRING:
        return ReferenceBinding(
            owner=owner.__name__,
            field=info.name,
            source=source.name,
            target_kind=target.__name__,
            target_type=target,
            many=False,
            pointer=target is not info.annotation,
        )

    if target_shape is ShapeKind.LIST and _is_string_sequence(unwrap_optional(source.annotation)[0]):
        elem, pointer = unwrap_optional(element_type(target))
        if type_shape(elem) is ShapeKind.RECORD:
            return ReferenceBinding(
                owner=owner.__name__,
                field=info.name,
                source=source.name,
                target_kind=elem.__name__,
                target_type=elem,
                many=True,
                pointer=pointer,
            )
    return None


@dataclass
class DeferredLink:
    """Assignment of a relationship field made after every declaration."""

    target: ast.expr
    field: str
    value: ast.expr
    frozen: bool = False

    def statement(self) -> ast.stmt:
        if self.frozen:
            node: ast.stmt = ast.Expr(value=ast.Call(
                func=ast.Attribute(
                    value=ast.Name(id="object", ctx=ast.Load()),
                    attr="__setattr__",
                    ctx=ast.Load(),
                ),
                args=[self.target, ast.Constant(value=self.field), self.value],
                keywords=[],
            ))
        else:
            node = ast.Assign(
                targets=[ast.Attribute(value=self.target, attr=self.field, ctx=ast.Store())],
                value=self.value,
            )
        return ast.fix_missing_locations(node)


class ReferenceResolver:
    """Resolves relationship fields to the declarations of their targets.

    Targets already declared above the current statement are referenced
    inline. Any other target gets a placeholder, and a :class:`DeferredLink`
    is recorded so the field is assigned once every record exists.
    """

    def __init__(
        self,
        datasets: Mapping[str, Dataset],
        naming: NamingTable,
        types: TypeRenderer,
        identifier_fields: Sequence[str],
    ) -> None:
        self.datasets = datasets
        self.naming = naming
        self.types = types
        self.identifier_fields = list(identifier_fields)
        self.deferred: list[DeferredLink] = []

    def resolve_field(self, record: Any, info: FieldInfo, path: ast.expr | None) -> Any:
        """Resolve a tagged field of ``record`` reachable through ``path``."""
        binding = binding_for(type(record), info)
        if binding is None:
            logger.debug(
                "Skipping %s.%s: unsupported relationship shape",
                type(record).__name__,
                info.name,
            )
            return SKIPPED
        return self.resolve_binding(record, binding, path)

    def placeholder(self, binding: ReferenceBinding) -> ast.expr:
        """Empty value for a relationship field that cannot be filled inline."""
        if binding.many:
            return ast.List(elts=[], ctx=ast.Load())
        if binding.pointer:
            return ast.Constant(value=None)
        return self.types.zero_value(binding.target_type)

    def match(self, dataset: Dataset, identifier: Any) -> int | None:
        """Position of the first record of ``dataset`` matching ``identifier``."""
        if not isinstance(identifier, str):
            return None
        for i, candidate in enumerate(dataset.records):
            for field_name in self.identifier_fields:
                value = getattr(candidate, field_name, None)
                if isinstance(value, str) and value == identifier:
                    return i
        return None

    def resolve_binding(
        self,
        record: Any,
        binding: ReferenceBinding,
        path: ast.expr | None,
    ) -> ast.expr:
        dataset = self.datasets.get(binding.target_kind)
        if dataset is None:
            logger.debug(
                "No %s dataset for %s.%s", binding.target_kind, binding.owner, binding.field
            )
            return self.placeholder(binding)

        source = getattr(record, binding.source)
        identifiers = list(source or ()) if binding.many else [source]

        names = []
        for identifier in identifiers:
            index = self.match(dataset, identifier)
            if index is None:
                logger.debug(
                    "Unresolved %s %r for %s.%s",
                    binding.target_kind,
                    identifier,
                    binding.owner,
                    binding.field,
                )
                continue
            names.append(self.naming.name_for(dataset.kind, index))

        if not binding.many and not names:
            return self.placeholder(binding)

        refs = [ast.Name(id=name, ctx=ast.Load()) for name in names]
        value: ast.expr = ast.List(elts=refs, ctx=ast.Load()) if binding.many else refs[0]
        if all(self.naming.is_declared(name) for name in names):
            return value

        if path is None:
            logger.warning(
                "Cannot link %s.%s: the record is not addressable from a declaration",
                binding.owner,
                binding.field,
            )
            return self.placeholder(binding)

        logger.debug("Deferring %s.%s -> %s", binding.owner, binding.field, ", ".join(names))
        self.deferred.append(DeferredLink(
            target=path,
            field=binding.field,
            value=value,
            frozen=is_frozen(type(record)),
        ))
        return self.placeholder(binding)
