"""Generation of Python modules holding dataclass records as static data."""

from __future__ import annotations

import ast
import dataclasses
import logging
import typing
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Sequence

from genstruct.config import Config, enhance_config
from genstruct.datasets import Dataset, DatasetNaming
from genstruct.imports import ImportTracker
from genstruct.naming import NamingTable, SyntheticIdentifiers, resolve_identifier, slug_to_identifier
from genstruct.reference import ReferenceResolver, binding_for
from genstruct.render import SourceFile
from genstruct.shapes import is_record, is_record_type, record_fields, resolve_hints, type_args
from genstruct.types import TypeRenderer
from genstruct.values import LiteralEmitter

logger = logging.getLogger(__name__)


def id_field(record_type: type) -> str | None:
    """Name of the record kind's ``id`` field (case-insensitive), if any."""
    for f in record_fields(record_type):
        if f.name.lower() == "id":
            return f.name
    return None


def dependencies(dataset: Dataset) -> list[str]:
    """Kinds the relationship fields of a dataset point to, in field order."""
    fields = record_fields(dataset.record_type)
    kinds: list[str] = []
    for f in fields:
        binding = binding_for(dataset.record_type, f, fields)
        if binding is not None and binding.target_kind not in kinds:
            kinds.append(binding.target_kind)
    return kinds


def _is_kind(tp: Any) -> bool:
    return (
        typing.get_origin(tp) is None
        and isinstance(tp, type)
        and (is_record_type(tp) or issubclass(tp, Enum))
    )


def value_types(datasets: Iterable[Dataset]) -> dict[str, type]:
    """Record and enum classes of every value held by the datasets, by name.

    The first class seen under a name wins.
    """
    found: dict[str, type] = {}
    seen: set[int] = set()
    pending: list[Any] = [record for dataset in datasets for record in dataset.records]
    while pending:
        value = pending.pop()
        if id(value) in seen:
            continue
        seen.add(id(value))
        if isinstance(value, Enum):
            found.setdefault(type(value).__name__, type(value))
        elif is_record(value):
            for cls in type(value).__mro__:
                if is_record_type(cls):
                    found.setdefault(cls.__name__, cls)
            pending.extend(getattr(value, f.name) for f in dataclasses.fields(value))
        elif isinstance(value, dict):
            pending.extend(value.keys())
            pending.extend(value.values())
        elif isinstance(value, (list, tuple, set, frozenset)):
            pending.extend(value)
    return found


def referenced_types(roots: Iterable[type]) -> list[type]:
    """Record and enum classes reachable from ``roots`` through bases and field annotations."""
    found: list[type] = []
    pending: list[Any] = list(roots)
    while pending:
        tp = pending.pop(0)
        if not _is_kind(tp):
            pending.extend(type_args(tp))
            continue
        if tp in found:
            continue
        found.append(tp)
        pending.extend(tp.__bases__)
        if is_record_type(tp):
            pending.extend(f.annotation for f in record_fields(tp))
    return found


def order_datasets(datasets: Sequence[Dataset]) -> list[Dataset]:
    """Order datasets so relationship targets come before their sources.

    A depth-first walk over the input order; self references are ignored and
    cycles are broken in favour of the dataset given first.
    """
    by_kind = {d.kind: d for d in datasets}
    visited: set[str] = set()
    ordered: list[Dataset] = []

    def visit(kind: str) -> None:
        if kind in visited:
            return
        visited.add(kind)
        for dep in dependencies(by_kind[kind]):
            if dep in by_kind and dep != kind:
                visit(dep)
        ordered.append(by_kind[kind])

    for dataset in datasets:
        visit(dataset.kind)
    return ordered


class Generator:
    """Generates a module declaring every record of one or more datasets.

    Args:
        config: Generation options; missing values are inferred from ``data``.
        data: The primary dataset, a list or tuple of dataclass instances.
        *refs: Reference datasets that relationship fields resolve against.

    Raises:
        GenstructError: If any dataset is invalid.
    """

    def __init__(self, config: Config, data: Any, *refs: Any) -> None:
        self.config = enhance_config(config, data)
        self.logger = self.config.logger or logger

        self.primary = Dataset.load(
            data,
            "data",
            DatasetNaming(
                type_name=self.config.type_name,
                var_prefix=self.config.var_prefix,
                constant_ident=self.config.constant_ident,
            ),
        )
        self.datasets: dict[str, Dataset] = {self.primary.kind: self.primary}
        for i, ref_data in enumerate(refs):
            dataset = Dataset.load(ref_data, f"refs[{i}]")
            if dataset.kind in self.datasets:
                self.logger.warning(
                    "Ignoring refs[%d]: a %s dataset was already given", i, dataset.kind
                )
                continue
            self.datasets[dataset.kind] = dataset

        # Annotations of kinds defined inside a function resolve against
        # the classes the datasets hold
        self.known_types = value_types(self.datasets.values())
        resolve_hints(
            [cls for cls in self.known_types.values() if is_record_type(cls)],
            self.known_types,
        )

    @property
    def refs(self) -> dict[str, Sequence[Any]]:
        """Reference datasets by kind name."""
        return {
            kind: dataset.records
            for kind, dataset in self.datasets.items()
            if dataset is not self.primary
        }

    def render(self) -> str:
        """Render the generated module without writing it.

        Raises:
            RenderError: If the generated text fails the syntax check.
        """
        config = self.config
        self.logger.info(
            "Generating %s with %d %s records and %d reference datasets",
            config.module_name,
            len(self.primary),
            self.primary.kind,
            len(self.datasets) - 1,
        )

        naming = NamingTable()
        for kind in self.datasets:
            naming.reserve(kind, guard=True)
        imports = ImportTracker(
            config.module_name,
            config.is_export_mode,
            is_reserved=naming.is_declaration_name,
        )
        roots = [d.record_type for d in self.datasets.values()] + list(self.known_types.values())
        for cls in referenced_types(roots):
            if imports.is_local(cls.__module__, cls.__qualname__):
                naming.reserve(cls.__name__, guard=True)
        types = TypeRenderer(imports)
        types.literals = LiteralEmitter(types, sort_map_keys=config.sort_map_keys)
        resolver = ReferenceResolver(self.datasets, naming, types, config.identifier_fields)
        literals = LiteralEmitter(types, resolver, sort_map_keys=config.sort_map_keys)

        collections = {
            kind: naming.reserve(dataset.naming.collection_name)
            for kind, dataset in self.datasets.items()
        }
        synthetic = SyntheticIdentifiers()
        for dataset in self.datasets.values():
            self._assign_names(dataset, naming, synthetic)

        source = SourceFile(
            f"Module {config.module_name} contains auto-generated {config.type_name} data."
        )
        for dataset in order_datasets(list(self.datasets.values())):
            self._emit_dataset(dataset, source, naming, imports, types, literals, collections[dataset.kind])

        if resolver.deferred:
            self.logger.debug("Linking %d deferred relationship fields", len(resolver.deferred))
            source.section("Relationships between records declared above")
            for link in resolver.deferred:
                source.add(link.statement())

        source.classes = types.class_definitions()
        source.imports = imports.statements()
        return source.render()

    def generate(self) -> Path:
        """Render the module and write it to the configured output file.

        Returns:
            The path written.
        """
        text = self.render()
        path = Path(self.config.output_file)
        if path.parent != Path("."):
            path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        self.logger.info("Wrote %s", path)
        return path

    def _assign_names(
        self,
        dataset: Dataset,
        naming: NamingTable,
        synthetic: SyntheticIdentifiers,
    ) -> None:
        for i, record in enumerate(dataset.records):
            identifier = resolve_identifier(
                record,
                self.config.identifier_fields,
                self.config.custom_var_name_fn,
                fallback=lambda: synthetic.next(dataset.naming.type_name),
            )
            naming.assign(dataset.kind, i, identifier, dataset.naming.var_prefix)

    def _emit_dataset(
        self,
        dataset: Dataset,
        source: SourceFile,
        naming: NamingTable,
        imports: ImportTracker,
        types: TypeRenderer,
        literals: LiteralEmitter,
        collection: str,
    ) -> None:
        self.logger.debug("Emitting %d %s records", len(dataset), dataset.kind)
        self._emit_constants(dataset, source, naming, imports)

        kind_type = types.type_name(dataset.record_type)
        source.section(f"{dataset.kind} records")
        for i, record in enumerate(dataset.records):
            name = naming.name_for(dataset.kind, i)
            value = literals.emit_record(record, ast.Name(id=name, ctx=ast.Load()))
            source.add(
                ast.AnnAssign(
                    target=ast.Name(id=name, ctx=ast.Store()),
                    annotation=kind_type,
                    value=value,
                    simple=1,
                ),
                expand=bool(value.keywords),
            )
            naming.declare(name)

        source.section()
        source.add(
            ast.AnnAssign(
                target=ast.Name(id=collection, ctx=ast.Store()),
                annotation=ast.Subscript(
                    value=ast.Name(id="list", ctx=ast.Load()), slice=kind_type, ctx=ast.Load()
                ),
                value=ast.List(
                    elts=[ast.Name(id=n, ctx=ast.Load()) for n in naming.names(dataset.kind)],
                    ctx=ast.Load(),
                ),
                simple=1,
            ),
            expand=True,
        )
        naming.declare(collection)

    def _emit_constants(
        self,
        dataset: Dataset,
        source: SourceFile,
        naming: NamingTable,
        imports: ImportTracker,
    ) -> None:
        field_name = id_field(dataset.record_type)
        if field_name is None:
            return

        constants = []
        for i, record in enumerate(dataset.records):
            value = getattr(record, field_name, None)
            if not isinstance(value, str):
                continue
            if not value:
                value = f"{dataset.naming.type_name.lower()}-{i + 1}"
            entry = naming.get(dataset.kind, i)
            fragment = slug_to_identifier(entry.identifier) if entry else ""
            name = naming.reserve(f"{dataset.naming.constant_ident}{fragment or i + 1}ID")
            constants.append((name, value))

        if not constants:
            return
        final = ast.Subscript(
            value=imports.bare("typing", "Final"),
            slice=ast.Name(id="str", ctx=ast.Load()),
            ctx=ast.Load(),
        )
        source.section(f"{dataset.kind} identifiers")
        for name, value in constants:
            source.add(ast.AnnAssign(
                target=ast.Name(id=name, ctx=ast.Store()),
                annotation=final,
                value=ast.Constant(value=value),
                simple=1,
            ))
            naming.declare(name)


def generate(data: Any, *refs: Any, **options: Any) -> Path:
    """Generate a module from ``data`` in one call.

    Keyword arguments are :class:`~genstruct.config.Config` fields.
    """
    return Generator(Config(**options), data, *refs).generate()
