"""Shape classification for values and type annotations.

Every value and annotation the generator handles is classified once into a
closed set of shapes, and the emitters then match on the shape. Anything the
classifier does not recognise lands in ``ShapeKind.OTHER`` so that the
fallback path is an explicit branch rather than an accident of dispatch.
"""

from __future__ import annotations

import collections.abc
import dataclasses
import datetime
import decimal
import fractions
import logging
import sys
import types
import typing
import uuid
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)

# Metadata key holding the name of the field a relationship is resolved from
TAG_KEY = "structgen"


class ShapeKind(Enum):
    """Shapes a value or a type annotation can take."""

    NONE = "none"
    BOOL = "bool"
    INT = "int"
    FLOAT = "float"
    COMPLEX = "complex"
    STRING = "string"
    BYTES = "bytes"
    LIST = "list"
    TUPLE = "tuple"
    SET = "set"
    FROZENSET = "frozenset"
    DICT = "dict"
    RECORD = "record"
    TIMESTAMP = "timestamp"
    DATE = "date"
    TIME = "time"
    TIMEDELTA = "timedelta"
    DECIMAL = "decimal"
    UUID = "uuid"
    FRACTION = "fraction"
    ENUM = "enum"
    # Annotation-only shapes
    OPTIONAL = "optional"
    UNION = "union"
    ANY = "any"
    OTHER = "other"

    @property
    def is_scalar(self) -> bool:
        return self in _SCALAR_SHAPES

    @property
    def is_container(self) -> bool:
        return self in _CONTAINER_SHAPES


_SCALAR_SHAPES = frozenset({
    ShapeKind.BOOL,
    ShapeKind.INT,
    ShapeKind.FLOAT,
    ShapeKind.COMPLEX,
    ShapeKind.STRING,
    ShapeKind.BYTES,
})

_CONTAINER_SHAPES = frozenset({
    ShapeKind.LIST,
    ShapeKind.TUPLE,
    ShapeKind.SET,
    ShapeKind.FROZENSET,
    ShapeKind.DICT,
})

# Concrete classes checked in order; datetime must precede date
_CLASS_SHAPES: list[tuple[type, ShapeKind]] = [
    (bool, ShapeKind.BOOL),
    (int, ShapeKind.INT),
    (float, ShapeKind.FLOAT),
    (complex, ShapeKind.COMPLEX),
    (str, ShapeKind.STRING),
    (bytes, ShapeKind.BYTES),
    (datetime.datetime, ShapeKind.TIMESTAMP),
    (datetime.date, ShapeKind.DATE),
    (datetime.time, ShapeKind.TIME),
    (datetime.timedelta, ShapeKind.TIMEDELTA),
    (decimal.Decimal, ShapeKind.DECIMAL),
    (uuid.UUID, ShapeKind.UUID),
    (fractions.Fraction, ShapeKind.FRACTION),
    (list, ShapeKind.LIST),
    (tuple, ShapeKind.TUPLE),
    (frozenset, ShapeKind.FROZENSET),
    (set, ShapeKind.SET),
    (dict, ShapeKind.DICT),
]

_GENERIC_ORIGINS: dict[Any, ShapeKind] = {
    list: ShapeKind.LIST,
    collections.abc.Sequence: ShapeKind.LIST,
    collections.abc.MutableSequence: ShapeKind.LIST,
    tuple: ShapeKind.TUPLE,
    set: ShapeKind.SET,
    collections.abc.Set: ShapeKind.SET,
    collections.abc.MutableSet: ShapeKind.SET,
    frozenset: ShapeKind.FROZENSET,
    dict: ShapeKind.DICT,
    collections.abc.Mapping: ShapeKind.DICT,
    collections.abc.MutableMapping: ShapeKind.DICT,
}


def is_record(value: Any) -> bool:
    """Check if a value is a dataclass instance (not a dataclass type)."""
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def is_record_type(tp: Any) -> bool:
    """Check if an annotation is a dataclass type."""
    return isinstance(tp, type) and dataclasses.is_dataclass(tp)


def value_shape(value: Any) -> ShapeKind:
    """Classify a runtime value."""
    if value is None:
        return ShapeKind.NONE
    # Enum members may also be ints or strs, so they are checked first
    if isinstance(value, Enum):
        return ShapeKind.ENUM
    if is_record(value):
        return ShapeKind.RECORD
    for cls, shape in _CLASS_SHAPES:
        if isinstance(value, cls):
            return shape
    return ShapeKind.OTHER


def _is_union(origin: Any) -> bool:
    return origin is typing.Union or origin is types.UnionType


def type_shape(tp: Any) -> ShapeKind:
    """Classify a type annotation."""
    if tp is None or tp is type(None):
        return ShapeKind.NONE
    if tp is Any or tp is object or isinstance(tp, typing.TypeVar):
        return ShapeKind.ANY

    origin = typing.get_origin(tp)
    if _is_union(origin):
        args = typing.get_args(tp)
        non_none = [a for a in args if a is not type(None)]
        if len(non_none) == 1 and len(args) == 2:
            return ShapeKind.OPTIONAL
        return ShapeKind.UNION
    if origin is not None:
        return _GENERIC_ORIGINS.get(origin, ShapeKind.OTHER)

    if not isinstance(tp, type):
        return ShapeKind.OTHER
    if issubclass(tp, Enum):
        return ShapeKind.ENUM
    if dataclasses.is_dataclass(tp):
        return ShapeKind.RECORD
    for cls, shape in _CLASS_SHAPES:
        if issubclass(tp, cls):
            return shape
    return ShapeKind.OTHER


def unwrap_optional(tp: Any) -> tuple[Any, bool]:
    """Return ``(inner, True)`` for ``Optional[inner]``, else ``(tp, False)``."""
    if type_shape(tp) is ShapeKind.OPTIONAL:
        inner = next(a for a in typing.get_args(tp) if a is not type(None))
        return inner, True
    return tp, False


def type_args(tp: Any) -> tuple[Any, ...]:
    """Return the type arguments of a generic annotation (empty for bare types)."""
    return typing.get_args(tp)


def element_type(tp: Any) -> Any:
    """Element annotation of a list/set/homogeneous tuple annotation, or Any."""
    args = typing.get_args(tp)
    if not args:
        return Any
    if type_shape(tp) is ShapeKind.TUPLE:
        if len(args) == 2 and args[1] is Ellipsis:
            return args[0]
        return Any
    return args[0]


@dataclass
class FieldInfo:
    """Introspected field of a record kind."""

    name: str
    annotation: Any
    tag: str | None = None
    has_default: bool = False
    init: bool = True

    @property
    def exported(self) -> bool:
        """Whether the field can be passed to the record's constructor."""
        return self.init


# Annotations of kinds that name types their module cannot see (classes
# defined inside a function), resolved by resolve_hints
_resolved_hints: weakref.WeakKeyDictionary[type, dict[str, Any]] = weakref.WeakKeyDictionary()


def _field_hints(cls: type, localns: Mapping[str, Any]) -> dict[str, Any]:
    hints: dict[str, Any] = {}
    for base in reversed(cls.__mro__):
        module = sys.modules.get(base.__module__)
        globalns = getattr(module, "__dict__", {})
        for name, annotation in base.__dict__.get("__annotations__", {}).items():
            if isinstance(annotation, str):
                try:
                    annotation = eval(annotation, globalns, dict(localns))
                except (NameError, AttributeError, SyntaxError, TypeError) as e:
                    logger.debug(
                        "Could not resolve %s.%s: %s", cls.__qualname__, name, e
                    )
                    continue
            hints[name] = annotation
    return hints


def type_hints(cls: type, localns: Mapping[str, Any] | None = None) -> dict[str, Any]:
    """Resolve a record kind's annotations.

    Args:
        cls: The record kind.
        localns: Extra names annotations may refer to.

    Returns:
        Resolved annotations by field name. When the annotations cannot be
        resolved as a whole, each one is resolved on its own and those that
        still fail are left out.
    """
    cached = _resolved_hints.get(cls)
    if cached is not None:
        return dict(cached)
    try:
        return typing.get_type_hints(cls, localns=dict(localns) if localns else None)
    except (NameError, TypeError) as e:
        logger.debug("Could not resolve annotations of %s: %s", cls.__qualname__, e)
    return _field_hints(cls, localns or {})


def resolve_hints(classes: Iterable[type], localns: Mapping[str, Any]) -> None:
    """Resolve the annotations of record kinds against ``localns``.

    Kinds whose annotations resolve from their own module are left alone;
    the others are remembered so :func:`record_fields` sees their types.
    """
    for cls in classes:
        _resolved_hints.pop(cls, None)
        try:
            typing.get_type_hints(cls)
        except (NameError, TypeError):
            _resolved_hints[cls] = type_hints(cls, localns)


def record_fields(cls: type) -> list[FieldInfo]:
    """List the dataclass fields of a record kind in declaration order."""
    hints = type_hints(cls)
    result = []
    for f in dataclasses.fields(cls):
        tag = f.metadata.get(TAG_KEY) if f.metadata else None
        has_default = (
            f.default is not dataclasses.MISSING
            or f.default_factory is not dataclasses.MISSING
        )
        result.append(FieldInfo(
            name=f.name,
            annotation=hints.get(f.name, Any),
            tag=tag or None,
            has_default=has_default,
            init=f.init,
        ))
    return result


def is_frozen(cls: type) -> bool:
    """Check if a dataclass kind is frozen (its fields cannot be assigned)."""
    params = getattr(cls, "__dataclass_params__", None)
    return bool(params is not None and params.frozen)
