"""Datasets: validated sequences of records of one kind."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Sequence

from genstruct.errors import (
    EmptySequenceError,
    MixedElementKindError,
    NotASequenceError,
    UnsupportedElementKindError,
)
from genstruct.naming import collection_name
from genstruct.shapes import is_record


def validate_sequence(data: Any, label: str = "data") -> type:
    """Check that ``data`` is a non-empty list or tuple of one record kind.

    Returns:
        The record class shared by every element.

    Raises:
        NotASequenceError: If ``data`` is not a list or tuple.
        EmptySequenceError: If ``data`` has no elements.
        UnsupportedElementKindError: If an element is not a dataclass instance.
        MixedElementKindError: If elements are instances of different classes.
    """
    if not isinstance(data, (list, tuple)):
        raise NotASequenceError(type(data).__name__, label)
    if len(data) == 0:
        raise EmptySequenceError(label)

    first = data[0]
    if not is_record(first):
        raise UnsupportedElementKindError(type(first).__name__, label)
    record_type = type(first)

    for item in data[1:]:
        if type(item) is record_type:
            continue
        if not is_record(item):
            raise UnsupportedElementKindError(type(item).__name__, label)
        raise MixedElementKindError(type(item).__name__, record_type.__name__, label)
    return record_type


@dataclass(frozen=True)
class DatasetNaming:
    """Naming settings of one dataset."""

    type_name: str
    var_prefix: str
    constant_ident: str

    @classmethod
    def for_kind(cls, kind: str) -> DatasetNaming:
        return cls(type_name=kind, var_prefix=kind, constant_ident=kind)

    @property
    def collection_name(self) -> str:
        return collection_name(self.type_name)


@dataclass
class Dataset:
    """A validated dataset taking part in a generation run."""

    kind: str
    record_type: type
    records: Sequence[Any]
    naming: DatasetNaming
    label: str = "data"

    @classmethod
    def load(
        cls,
        data: Any,
        label: str = "data",
        naming: DatasetNaming | None = None,
    ) -> Dataset:
        record_type = validate_sequence(data, label)
        kind = record_type.__name__
        return cls(
            kind=kind,
            record_type=record_type,
            records=data,
            naming=naming or DatasetNaming.for_kind(kind),
            label=label,
        )

    def __len__(self) -> int:
        return len(self.records)
