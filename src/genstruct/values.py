"""Literal emission: runtime values to Python expressions."""

from __future__ import annotations

import ast
import datetime
import logging
import math
from typing import Any

from genstruct.reference import SKIPPED, ReferenceResolver
from genstruct.shapes import ShapeKind, record_fields, value_shape
from genstruct.types import TypeRenderer

logger = logging.getLogger(__name__)


def _call(func: ast.expr, *args: ast.expr, **keywords: ast.expr) -> ast.Call:
    return ast.Call(
        func=func,
        args=list(args),
        keywords=[ast.keyword(arg=k, value=v) for k, v in keywords.items()],
    )


def _const(value: Any) -> ast.Constant:
    return ast.Constant(value=value)


def attribute_path(path: ast.expr | None, name: str) -> ast.expr | None:
    """Extend an access path with an attribute, if the path is addressable."""
    if path is None:
        return None
    return ast.Attribute(value=path, attr=name, ctx=ast.Load())


def item_path(path: ast.expr | None, key: ast.expr) -> ast.expr | None:
    """Extend an access path with a subscript, if the path is addressable."""
    if path is None:
        return None
    return ast.Subscript(value=path, slice=key, ctx=ast.Load())


class LiteralEmitter:
    """Turns values into expressions that rebuild them when evaluated.

    When a :class:`~genstruct.reference.ReferenceResolver` is attached, the
    tagged fields of records are handed to it instead of being emitted as
    copies of their current value. Access paths from the enclosing
    declaration are threaded through the recursion so that references that
    cannot be emitted inline can be linked later.
    """

    def __init__(
        self,
        types: TypeRenderer,
        resolver: ReferenceResolver | None = None,
        sort_map_keys: bool = True,
    ) -> None:
        self.types = types
        self.imports = types.imports
        self.resolver = resolver
        self.sort_map_keys = sort_map_keys

    def emit_value(self, value: Any, path: ast.expr | None = None) -> ast.expr:
        """Render a value as an expression.

        Args:
            value: The value to render.
            path: Expression reaching ``value`` from a module-level
                declaration, or ``None`` when the value is not addressable.

        Returns:
            An expression which evaluates to a value equal to ``value``.
        """
        shape = value_shape(value)

        if shape is ShapeKind.NONE:
            return _const(None)
        if shape is ShapeKind.FLOAT:
            return self._emit_float(value)
        if shape is ShapeKind.COMPLEX:
            if math.isfinite(value.real) and math.isfinite(value.imag):
                return _const(complex(value))
            return _call(ast.Name(id="complex", ctx=ast.Load()),
                         self._emit_float(value.real), self._emit_float(value.imag))
        if shape is ShapeKind.BOOL:
            return _const(bool(value))
        if shape is ShapeKind.INT:
            return _const(int(value))
        if shape is ShapeKind.STRING:
            return _const(str(value))
        if shape is ShapeKind.BYTES:
            return _const(bytes(value))

        if shape is ShapeKind.LIST:
            return ast.List(
                elts=[self.emit_value(v, item_path(path, _const(i))) for i, v in enumerate(value)],
                ctx=ast.Load(),
            )
        if shape is ShapeKind.TUPLE:
            return ast.Tuple(
                elts=[self.emit_value(v, item_path(path, _const(i))) for i, v in enumerate(value)],
                ctx=ast.Load(),
            )
        if shape in (ShapeKind.SET, ShapeKind.FROZENSET):
            return self._emit_set(value, shape)
        if shape is ShapeKind.DICT:
            return self._emit_dict(value, path)

        if shape is ShapeKind.RECORD:
            return self.emit_record(value, path)
        if shape is ShapeKind.ENUM:
            return self._emit_enum(value)

        if shape is ShapeKind.TIMESTAMP:
            return self._emit_datetime(value)
        if shape is ShapeKind.DATE:
            return _call(self.imports.qualified("datetime", "date"),
                         _const(value.year), _const(value.month), _const(value.day))
        if shape is ShapeKind.TIME:
            return self._emit_time(value)
        if shape is ShapeKind.TIMEDELTA:
            return self._emit_timedelta(value)
        if shape is ShapeKind.DECIMAL:
            return _call(self.imports.qualified("decimal", "Decimal"), _const(str(value)))
        if shape is ShapeKind.UUID:
            return _call(self.imports.qualified("uuid", "UUID"), _const(str(value)))
        if shape is ShapeKind.FRACTION:
            return _call(self.imports.qualified("fractions", "Fraction"),
                         _const(value.numerator), _const(value.denominator))

        logger.warning(
            "No literal syntax for %s; rendering its string form", type(value).__qualname__
        )
        return _const(str(value))

    def emit_record(self, record: Any, path: ast.expr | None = None) -> ast.Call:
        """Render a record as a keyword constructor call.

        Untagged fields are emitted first, then tagged fields are resolved;
        the keywords keep the declaration order of the fields. A tagged
        field the resolver skips is left out when it has a default and
        given its zero value otherwise.
        """
        fields = [f for f in record_fields(type(record)) if f.exported]
        values: dict[str, ast.expr] = {}

        tagged = []
        for f in fields:
            if f.tag and self.resolver is not None:
                tagged.append(f)
                continue
            values[f.name] = self.emit_value(getattr(record, f.name), attribute_path(path, f.name))

        for f in tagged:
            result = self.resolver.resolve_field(record, f, path)
            if result is SKIPPED:
                if not f.has_default:
                    values[f.name] = self.types.zero_value(f.annotation)
                continue
            values[f.name] = result

        return ast.Call(
            func=self.types.type_name(type(record)),
            args=[],
            keywords=[ast.keyword(arg=f.name, value=values[f.name]) for f in fields if f.name in values],
        )

    def _emit_float(self, value: float) -> ast.expr:
        value = float(value)
        if math.isnan(value):
            return _call(ast.Name(id="float", ctx=ast.Load()), _const("nan"))
        if math.isinf(value):
            inf = _call(ast.Name(id="float", ctx=ast.Load()), _const("inf"))
            return inf if value > 0 else ast.UnaryOp(op=ast.USub(), operand=inf)
        return _const(value)

    def _emit_set(self, value: Any, shape: ShapeKind) -> ast.expr:
        elements = [self.emit_value(v) for v in value]
        elements.sort(key=ast.unparse)
        if shape is ShapeKind.FROZENSET:
            if not elements:
                return _call(ast.Name(id="frozenset", ctx=ast.Load()))
            return _call(ast.Name(id="frozenset", ctx=ast.Load()), ast.Set(elts=elements))
        if not elements:
            return _call(ast.Name(id="set", ctx=ast.Load()))
        return ast.Set(elts=elements)

    def _emit_dict(self, value: dict, path: ast.expr | None) -> ast.Dict:
        items = list(value.items())
        if self.sort_map_keys:
            try:
                items = sorted(items, key=lambda kv: kv[0])
            except TypeError:
                logger.debug("Keeping insertion order for dict with unorderable keys")
        keys: list[ast.expr | None] = []
        values: list[ast.expr] = []
        for k, v in items:
            key = self.emit_value(k)
            keys.append(key)
            values.append(self.emit_value(v, item_path(path, key)))
        return ast.Dict(keys=keys, values=values)

    def _emit_enum(self, value: Any) -> ast.expr:
        cls = self.types.type_name(type(value))
        name = value.name
        if name and name.isidentifier() and getattr(type(value), name, None) is value:
            return ast.Attribute(value=cls, attr=name, ctx=ast.Load())
        # Composite flags have no member name of their own
        return _call(cls, self.emit_value(value.value))

    def _utc(self) -> ast.expr:
        return ast.Attribute(
            value=self.imports.qualified("datetime", "timezone"), attr="utc", ctx=ast.Load()
        )

    def _emit_tzinfo(self, offset: datetime.timedelta) -> ast.expr:
        if not offset:
            return self._utc()
        return _call(self.imports.qualified("datetime", "timezone"), self._emit_timedelta(offset))

    def _emit_datetime(self, value: datetime.datetime) -> ast.expr:
        keywords = {}
        if value.utcoffset() is not None:
            value = value.astimezone(datetime.timezone.utc)
            keywords["tzinfo"] = self._utc()
        args = [value.year, value.month, value.day, value.hour, value.minute,
                value.second, value.microsecond]
        return _call(self.imports.qualified("datetime", "datetime"),
                     *[_const(a) for a in args], **keywords)

    def _emit_time(self, value: datetime.time) -> ast.expr:
        keywords = {}
        offset = value.utcoffset()
        if offset is not None:
            keywords["tzinfo"] = self._emit_tzinfo(offset)
        args = [value.hour, value.minute, value.second, value.microsecond]
        return _call(self.imports.qualified("datetime", "time"),
                     *[_const(a) for a in args], **keywords)

    def _emit_timedelta(self, value: datetime.timedelta) -> ast.expr:
        keywords = {
            name: _const(amount)
            for name, amount in (
                ("days", value.days),
                ("seconds", value.seconds),
                ("microseconds", value.microseconds),
            )
            if amount
        }
        if not keywords:
            return _call(self.imports.qualified("datetime", "timedelta"), _const(0))
        return _call(self.imports.qualified("datetime", "timedelta"), **keywords)
