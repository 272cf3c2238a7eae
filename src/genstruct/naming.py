"""Declaration naming: identifiers, slugs, plurals and the naming table."""

from __future__ import annotations

import itertools
import keyword
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from genstruct.shapes import record_fields

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]+")

# Irregular plurals, matched against the trailing CamelCase word of a kind name
IRREGULAR_PLURALS: dict[str, str] = {
    "Person": "People",
    "Child": "Children",
    "Man": "Men",
    "Woman": "Women",
    "Mouse": "Mice",
    "Goose": "Geese",
    "Foot": "Feet",
    "Tooth": "Teeth",
    "Ox": "Oxen",
    "Datum": "Data",
    "Criterion": "Criteria",
    "Index": "Indices",
    "Matrix": "Matrices",
    "Vertex": "Vertices",
    "Analysis": "Analyses",
    "Leaf": "Leaves",
    "Knife": "Knives",
    "Life": "Lives",
}

# Nouns whose plural is the same word
INVARIANT_PLURALS = frozenset({"Sheep", "Fish", "Series", "Species", "Deer", "Moose", "Aircraft"})

_LAST_WORD = re.compile(r"[A-Z][a-z0-9]*$")


def slug_to_identifier(s: str) -> str:
    """Convert an arbitrary display string to a CamelCase identifier fragment.

    The string is split on every run of non-alphanumeric characters; each
    fragment is capitalized (first letter upper, remainder lower) and the
    fragments are joined without separators.

        >>> slug_to_identifier("go-programming")
        'GoProgramming'
        >>> slug_to_identifier("  HELLO, world!! ")
        'HelloWorld'
    """
    words = _NON_ALNUM.sub(" ", s).split()
    return "".join(w[:1].upper() + w[1:].lower() for w in words)


def pluralize(name: str) -> str:
    """Best-effort English plural of a CamelCase kind name."""
    if not name:
        return name
    match = _LAST_WORD.search(name)
    if match:
        head, word = name[: match.start()], match.group()
        if word in INVARIANT_PLURALS:
            return name
        if word in IRREGULAR_PLURALS:
            return head + IRREGULAR_PLURALS[word]
    lower = name.lower()
    if lower.endswith(("s", "x", "z", "sh", "ch")):
        return name + "es"
    if lower.endswith("y") and len(lower) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"
    return name + "s"


def collection_name(type_name: str) -> str:
    """Name of the collection holding every record of a kind (``AllPosts``)."""
    return "All" + pluralize(type_name)


class SyntheticIdentifiers:
    """Per-run counter for records that offer no usable identifier.

    Repeated runs over the same input yield the same identifiers.
    """

    def __init__(self) -> None:
        self._counters: dict[str, itertools.count] = {}

    def next(self, type_name: str) -> str:
        counter = self._counters.setdefault(type_name, itertools.count(1))
        return f"{type_name}-{next(counter)}"


def resolve_identifier(
    record: Any,
    policy: Iterable[str],
    custom_fn: Callable[[Any], str] | None = None,
    fallback: Callable[[], str] | None = None,
) -> str:
    """Derive a human-readable identifier for a record.

    Args:
        record: Dataclass instance to name.
        policy: Field names tried in order; the first non-empty string wins.
        custom_fn: Optional function that takes precedence over the policy.
        fallback: Produces a synthetic identifier when the record has no
            non-empty string field at all.

    Returns:
        The identifier string (possibly empty when no fallback is given).
    """
    if custom_fn is not None:
        return custom_fn(record)

    for field_name in policy:
        value = getattr(record, field_name, None)
        if isinstance(value, str) and value:
            return value

    for info in record_fields(type(record)):
        value = getattr(record, info.name, None)
        if isinstance(value, str) and value:
            return value

    if fallback is not None:
        return fallback()
    return ""


def _valid_name(name: str) -> str:
    if not name.isidentifier() or keyword.iskeyword(name):
        return "_" + name
    return name


@dataclass
class NamedRecord:
    """Naming table entry for one record."""

    kind: str
    index: int
    identifier: str
    name: str


@dataclass
class NamingTable:
    """Run-scoped mapping from (kind, record position) to declaration name.

    Names are unique across the generated module. The table also tracks
    which names have already been declared, so references can tell whether
    a target can be used inline or must be linked after all declarations.
    """

    _entries: dict[tuple[str, int], NamedRecord] = field(default_factory=dict)
    _taken: set[str] = field(default_factory=set)
    _guards: set[str] = field(default_factory=set)
    _declared: set[str] = field(default_factory=set)

    def reserve(self, name: str, guard: bool = False) -> str:
        """Claim a name, returning a unique variant of it.

        Guard reservations (class names the module will bind) are claimed
        as-is and only keep declarations from shadowing them.
        """
        if guard:
            self._guards.add(name)
            self._taken.add(name)
            return name
        name = _valid_name(name)
        candidate = name
        for n in itertools.count(2):
            if candidate not in self._taken:
                break
            candidate = f"{name}{n}"
        self._taken.add(candidate)
        return candidate

    def is_taken(self, name: str) -> bool:
        return name in self._taken

    def is_declaration_name(self, name: str) -> bool:
        """Check if a name was claimed by a declaration, constant or collection."""
        return name in self._taken and name not in self._guards

    def assign(self, kind: str, index: int, identifier: str, prefix: str) -> str:
        """Assign the declaration name for a record."""
        fragment = slug_to_identifier(identifier) or str(index + 1)
        name = self.reserve(prefix + fragment)
        self._entries[(kind, index)] = NamedRecord(kind, index, identifier, name)
        return name

    def get(self, kind: str, index: int) -> NamedRecord | None:
        return self._entries.get((kind, index))

    def name_for(self, kind: str, index: int) -> str:
        """Get a record's declaration name, raising if it has none."""
        entry = self._entries.get((kind, index))
        if entry is None:
            raise KeyError(f"No declaration name for {kind}[{index}]")
        return entry.name

    def names(self, kind: str) -> list[str]:
        """Declaration names of a kind, in dataset order."""
        entries = [e for (k, _), e in self._entries.items() if k == kind]
        return [e.name for e in sorted(entries, key=lambda e: e.index)]

    def declare(self, name: str) -> None:
        self._declared.add(name)

    def is_declared(self, name: str) -> bool:
        return name in self._declared

    def __len__(self) -> int:
        return len(self._entries)
