"""Type expressions, zero values and exported class definitions."""

from __future__ import annotations

import ast
import dataclasses
import inspect
import logging
import typing
from enum import Enum
from typing import TYPE_CHECKING, Any

from genstruct.imports import ImportTracker
from genstruct.shapes import (
    ShapeKind,
    is_frozen,
    is_record_type,
    record_fields,
    type_args,
    type_shape,
    unwrap_optional,
)

if TYPE_CHECKING:
    from genstruct.values import LiteralEmitter

logger = logging.getLogger(__name__)

# Canonical modules whose types are always referenced qualified
_QUALIFIED_SHAPES: dict[ShapeKind, tuple[str, str]] = {
    ShapeKind.TIMESTAMP: ("datetime", "datetime"),
    ShapeKind.DATE: ("datetime", "date"),
    ShapeKind.TIME: ("datetime", "time"),
    ShapeKind.TIMEDELTA: ("datetime", "timedelta"),
    ShapeKind.DECIMAL: ("decimal", "Decimal"),
    ShapeKind.UUID: ("uuid", "UUID"),
    ShapeKind.FRACTION: ("fractions", "Fraction"),
}

_CONTAINER_NAMES: dict[ShapeKind, str] = {
    ShapeKind.LIST: "list",
    ShapeKind.TUPLE: "tuple",
    ShapeKind.SET: "set",
    ShapeKind.FROZENSET: "frozenset",
    ShapeKind.DICT: "dict",
}

_SCALAR_ZEROS: dict[ShapeKind, Any] = {
    ShapeKind.BOOL: False,
    ShapeKind.INT: 0,
    ShapeKind.FLOAT: 0.0,
    ShapeKind.COMPLEX: 0j,
    ShapeKind.STRING: "",
    ShapeKind.BYTES: b"",
}


def _name(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Load())


def _subscript(value: ast.expr, args: list[ast.expr]) -> ast.expr:
    slice_: ast.expr = args[0] if len(args) == 1 else ast.Tuple(elts=args, ctx=ast.Load())
    return ast.Subscript(value=value, slice=slice_, ctx=ast.Load())


def _union(parts: list[ast.expr]) -> ast.expr:
    node = parts[0]
    for part in parts[1:]:
        node = ast.BinOp(left=node, op=ast.BitOr(), right=part)
    return node


def _auto_docstring(cls: type) -> bool:
    doc = cls.__doc__ or ""
    return doc.startswith(cls.__name__ + "(") or doc == "An enumeration."


class TypeRenderer:
    """Renders annotations as type expressions for a generated module.

    Record and enum classes that are local to the generated module are
    collected while rendering; :meth:`class_definitions` turns them into
    class definitions once every declaration has been emitted.
    """

    def __init__(self, imports: ImportTracker) -> None:
        self.imports = imports
        self.literals: LiteralEmitter | None = None
        self._local: dict[type, None] = {}

    def type_name(self, cls: type) -> ast.expr:
        """Expression naming a class, registering local kinds for export."""
        if self.imports.is_local(cls.__module__, cls.__qualname__) and (
            is_record_type(cls) or issubclass(cls, Enum)
        ):
            self._local.setdefault(cls, None)
        return self.imports.reference_type(cls)

    def emit_type(self, tp: Any) -> ast.expr:
        """Render an annotation as a type expression."""
        shape = type_shape(tp)

        if shape is ShapeKind.NONE:
            return ast.Constant(value=None)
        if shape is ShapeKind.ANY:
            return self.imports.bare("typing", "Any")
        if shape in _QUALIFIED_SHAPES:
            return self.imports.qualified(*_QUALIFIED_SHAPES[shape])
        if shape in (ShapeKind.RECORD, ShapeKind.ENUM) or shape.is_scalar:
            return self.type_name(tp)

        if shape is ShapeKind.OPTIONAL:
            inner, _ = unwrap_optional(tp)
            return _union([self.emit_type(inner), ast.Constant(value=None)])
        if shape is ShapeKind.UNION:
            return _union([self.emit_type(arg) for arg in type_args(tp)])

        if shape.is_container:
            base = _name(_CONTAINER_NAMES[shape])
            args = type_args(tp)
            if not args:
                return base
            if shape is ShapeKind.TUPLE and len(args) == 2 and args[1] is Ellipsis:
                return _subscript(base, [self.emit_type(args[0]), ast.Constant(value=...)])
            return _subscript(base, [self.emit_type(arg) for arg in args])

        if isinstance(tp, type):
            return self.type_name(tp)
        logger.debug("Rendering unsupported annotation %r as Any", tp)
        return self.imports.bare("typing", "Any")

    def zero_value(self, tp: Any, _stack: tuple[type, ...] = ()) -> ast.expr:
        """Zero-valued placeholder expression for an annotation."""
        shape = type_shape(tp)

        if shape in _SCALAR_ZEROS:
            return ast.Constant(value=_SCALAR_ZEROS[shape])
        if shape is ShapeKind.LIST:
            return ast.List(elts=[], ctx=ast.Load())
        if shape is ShapeKind.TUPLE:
            args = type_args(tp)
            if args and Ellipsis not in args and args != ((),):
                return ast.Tuple(elts=[self.zero_value(a, _stack) for a in args], ctx=ast.Load())
            return ast.Tuple(elts=[], ctx=ast.Load())
        if shape is ShapeKind.SET:
            return ast.Call(func=_name("set"), args=[], keywords=[])
        if shape is ShapeKind.FROZENSET:
            return ast.Call(func=_name("frozenset"), args=[], keywords=[])
        if shape is ShapeKind.DICT:
            return ast.Dict(keys=[], values=[])

        if shape in (ShapeKind.TIMESTAMP, ShapeKind.DATE, ShapeKind.TIME):
            return ast.Attribute(
                value=self.imports.qualified(*_QUALIFIED_SHAPES[shape]),
                attr="min",
                ctx=ast.Load(),
            )
        if shape in (ShapeKind.TIMEDELTA, ShapeKind.DECIMAL, ShapeKind.FRACTION):
            return ast.Call(
                func=self.imports.qualified(*_QUALIFIED_SHAPES[shape]),
                args=[ast.Constant(value=0)],
                keywords=[],
            )
        if shape is ShapeKind.UUID:
            return ast.Call(
                func=self.imports.qualified("uuid", "UUID"),
                args=[],
                keywords=[ast.keyword(arg="int", value=ast.Constant(value=0))],
            )

        if shape is ShapeKind.ENUM:
            members = list(tp)
            if not members:
                return ast.Constant(value=None)
            return ast.Attribute(value=self.type_name(tp), attr=members[0].name, ctx=ast.Load())

        if shape is ShapeKind.RECORD and tp not in _stack:
            keywords = [
                ast.keyword(arg=f.name, value=self.zero_value(f.annotation, _stack + (tp,)))
                for f in record_fields(tp)
                if f.exported and not f.has_default
            ]
            return ast.Call(func=self.type_name(tp), args=[], keywords=keywords)

        return ast.Constant(value=None)

    def class_definitions(self) -> list[ast.stmt]:
        """Class definitions of every local kind seen so far.

        Exporting a class can reach further local kinds (through field
        annotations, defaults and bases); those are exported too. Bases and
        the kinds named in field annotations are placed first, cycles aside.
        """
        defs: dict[type, ast.stmt] = {}
        pending = list(self._local)
        while pending:
            cls = pending.pop(0)
            if cls in defs:
                continue
            defs[cls] = self.export_class(cls)
            pending.extend(c for c in self._local if c not in defs and c not in pending)

        ordered: list[type] = []
        visiting: set[type] = set()

        def visit(cls: type) -> None:
            if cls in ordered or cls in visiting:
                return
            visiting.add(cls)
            for dep in self._dependencies(cls):
                if dep in defs:
                    visit(dep)
            ordered.append(cls)

        for cls in defs:
            visit(cls)
        return [defs[cls] for cls in ordered]

    def _dependencies(self, cls: type) -> list[type]:
        found = list(cls.__bases__)
        if is_record_type(cls):
            pending = [f.annotation for f in record_fields(cls)]
            while pending:
                tp = pending.pop(0)
                if isinstance(tp, type) and tp is not cls and tp not in found:
                    found.append(tp)
                pending.extend(type_args(tp))
        return found

    def export_class(self, cls: type) -> ast.ClassDef:
        """Build the class definition of a local record or enum kind."""
        if issubclass(cls, Enum):
            return self._export_enum(cls)
        return self._export_record(cls)

    def _class_body(self, cls: type) -> list[ast.stmt]:
        if cls.__doc__ and not _auto_docstring(cls):
            return [ast.Expr(value=ast.Constant(value=inspect.cleandoc(cls.__doc__)))]
        return []

    def _bases(self, cls: type) -> list[ast.expr]:
        return [self.type_name(base) for base in cls.__bases__ if base is not object]

    def _export_enum(self, cls: type[Enum]) -> ast.ClassDef:
        assert self.literals is not None
        body = self._class_body(cls)
        for member in cls:
            body.append(ast.Assign(
                targets=[ast.Name(id=member.name, ctx=ast.Store())],
                value=self.literals.emit_value(member.value),
            ))
        return ast.ClassDef(
            name=cls.__name__,
            bases=self._bases(cls),
            keywords=[],
            body=body or [ast.Pass()],
            decorator_list=[],
            type_params=[],
        )

    def _export_record(self, cls: type) -> ast.ClassDef:
        decorator: ast.expr = self.imports.qualified("dataclasses", "dataclass")
        params = getattr(cls, "__dataclass_params__", None)
        options = []
        if is_frozen(cls):
            options.append(ast.keyword(arg="frozen", value=ast.Constant(value=True)))
        if params is not None and params.order:
            options.append(ast.keyword(arg="order", value=ast.Constant(value=True)))
        if params is not None and not params.eq:
            options.append(ast.keyword(arg="eq", value=ast.Constant(value=False)))
        if options:
            decorator = ast.Call(func=decorator, args=[], keywords=options)

        own = inspect.get_annotations(cls)
        hints = {f.name: f.annotation for f in record_fields(cls)}
        body = self._class_body(cls)
        for f in dataclasses.fields(cls):
            if f.name not in own:
                continue
            body.append(ast.AnnAssign(
                target=ast.Name(id=f.name, ctx=ast.Store()),
                annotation=self.emit_type(hints.get(f.name, typing.Any)),
                value=self._field_value(f),
                simple=1,
            ))

        return ast.ClassDef(
            name=cls.__name__,
            bases=self._bases(cls),
            keywords=[],
            body=body or [ast.Pass()],
            decorator_list=[decorator],
            type_params=[],
        )

    def _field_value(self, f: dataclasses.Field) -> ast.expr | None:
        assert self.literals is not None
        keywords = []
        if f.default is not dataclasses.MISSING:
            default = self.literals.emit_value(f.default)
            if f.init and f.repr and f.compare and not f.metadata:
                return default
            keywords.append(ast.keyword(arg="default", value=default))
        elif f.default_factory is not dataclasses.MISSING:
            keywords.append(ast.keyword(arg="default_factory", value=self._factory(f.default_factory)))
        if not f.init:
            keywords.append(ast.keyword(arg="init", value=ast.Constant(value=False)))
        if not f.repr:
            keywords.append(ast.keyword(arg="repr", value=ast.Constant(value=False)))
        if not f.compare:
            keywords.append(ast.keyword(arg="compare", value=ast.Constant(value=False)))
        if f.metadata:
            keywords.append(ast.keyword(arg="metadata", value=self.literals.emit_value(dict(f.metadata))))
        if not keywords:
            return None
        return ast.Call(func=self.imports.qualified("dataclasses", "field"), args=[], keywords=keywords)

    def _factory(self, factory: Any) -> ast.expr:
        assert self.literals is not None
        if isinstance(factory, type):
            return self.type_name(factory)
        module = getattr(factory, "__module__", None)
        qualname = getattr(factory, "__qualname__", "")
        if module and qualname and "<" not in qualname and not self.imports.is_local(module, qualname):
            return self.imports.reference(module, qualname)
        # Lambdas and local functions cannot be imported; inline what they build
        return ast.Lambda(
            args=ast.arguments(
                posonlyargs=[], args=[], vararg=None, kwonlyargs=[],
                kw_defaults=[], kwarg=None, defaults=[],
            ),
            body=self.literals.emit_value(factory()),
        )
