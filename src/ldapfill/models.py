"""Data models for ldapfill."""

from __future__ import annotations

import weakref
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Union

import ldap.dn

from ldapfill.exceptions import ConfigError
from ldapfill.sources import ValueSource

MODIFIER_NAMES = ("file", "combine", "lowercase", "uppercase")


@dataclass(frozen=True)
class Literal:
    """A fixed string."""

    text: str


@dataclass(frozen=True)
class FileRef:
    """One random line of *source*, drawn anew on every evaluation."""

    source: ValueSource


@dataclass(frozen=True)
class Combine:
    """Concatenation of the children's values, without separator."""

    children: tuple[Expression, ...]

    def __post_init__(self) -> None:
        if not self.children:
            raise ValueError("combine requires at least one argument")


@dataclass(frozen=True)
class Lowercase:
    child: Expression


@dataclass(frozen=True)
class Uppercase:
    child: Expression


Expression = Union[Literal, FileRef, Combine, Lowercase, Uppercase]


@dataclass(frozen=True)
class EntryTemplate:
    """How to generate entries of one object class."""

    name: str                                  # object class section name
    attributes: Mapping[str, Expression]       # declaration order is output order
    rdn: str                                   # attribute naming the entry
    object_classes: tuple[str, ...] = ()       # objectClass values, defaults to (name,)

    def __post_init__(self) -> None:
        if self.rdn not in self.attributes:
            raise ConfigError(
                f"RDN attribute {self.rdn!r} of {self.name!r} is not one of its "
                f"attributes ({', '.join(self.attributes) or 'none'})"
            )
        if not self.object_classes:
            object.__setattr__(self, "object_classes", (self.name,))


@dataclass(frozen=True)
class HierarchyLevel:
    """One level of the tree: *count* entries of *template* per parent."""

    template: EntryTemplate
    count: int


@dataclass(frozen=True, eq=False)
class Entry:
    """A generated directory entry.

    Entries are immutable once created, except that the tree builder appends
    to ``children`` while the level below is generated.  Children are owned
    by their parent; the link back to the parent is a weak reference so the
    tree holds no cycles.
    """

    template: EntryTemplate
    attributes: dict[str, str]
    rdn_value: str
    dn: str
    children: list[Entry] = field(default_factory=list, repr=False)
    _parent: weakref.ref[Entry] | None = field(default=None, repr=False)

    @property
    def parent(self) -> Entry | None:
        return self._parent() if self._parent is not None else None

    @property
    def object_class(self) -> str:
        return self.template.name

    @property
    def rdn_attribute(self) -> str:
        return self.template.rdn

    @property
    def rdn(self) -> str:
        return make_rdn(self.template.rdn, self.rdn_value)

    @property
    def depth(self) -> int:
        depth = 0
        node = self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth

    @property
    def is_leaf(self) -> bool:
        return len(self.children) == 0


def make_rdn(attribute: str, value: str) -> str:
    """Build ``attribute=value`` with *value* escaped for use in a DN."""
    return f"{attribute}={ldap.dn.escape_dn_chars(value)}"


def join_dn(rdn: str, parent_dn: str) -> str:
    return f"{rdn},{parent_dn}" if parent_dn else rdn
