"""Generate synthetic search queries against a generated tree."""

from __future__ import annotations

import random
import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from ldap.filter import escape_filter_chars

from ldapfill.models import Entry
from ldapfill.tree import containers, walk

PLACEHOLDER = "{value}"


@dataclass(frozen=True)
class QuerySpec:
    """A search filter template, e.g. ``(uid={value})``."""

    filter: str
    attribute: str                      # attribute whose values fill the placeholder
    no_result_probability: float = 0.0  # chance of a value that matches nothing
    weight: float = 1.0

    def __post_init__(self) -> None:
        if PLACEHOLDER not in self.filter:
            raise ValueError(f"Filter {self.filter!r} has no {PLACEHOLDER} placeholder")
        if not 0.0 <= self.no_result_probability <= 1.0:
            raise ValueError(
                f"no-result-probability must be between 0 and 1, got {self.no_result_probability}"
            )
        if self.weight <= 0:
            raise ValueError(f"weight must be positive, got {self.weight}")


@dataclass(frozen=True)
class SearchQuery:
    base: str
    filter: str
    expect_results: bool

    def as_dict(self) -> dict:
        return {"base": self.base, "filter": self.filter, "expect_results": self.expect_results}


def no_match_value(rng: random.Random | None = None) -> str:
    """A filter value that matches no generated entry."""
    rng = rng if rng is not None else random
    return f"ldapfill-nomatch-{uuid.UUID(int=rng.getrandbits(128), version=4).hex}"


def _search_bases(roots: Sequence[Entry], suffix: str) -> list[tuple[str, list[Entry]]]:
    # entries sharing a DN are one base to a directory server
    bases: dict[str, list[Entry]] = {}
    if suffix or not roots:
        bases[suffix] = list(walk(roots))
    for entry in containers(roots):
        bases.setdefault(entry.dn, []).extend(walk(entry.children))
    if not bases:
        # no containers and no suffix: search from each root
        for entry in roots:
            bases.setdefault(entry.dn, []).append(entry)
    return list(bases.items())


def generate_queries(
    roots: Sequence[Entry],
    specs: Sequence[QuerySpec],
    count: int,
    suffix: str = "",
    rng: random.Random | None = None,
) -> list[SearchQuery]:
    """Build *count* search queries for the tree under *roots*.

    Each query picks a spec by weight and a base DN uniformly among *suffix*
    (when set) and every entry with children.  The placeholder is replaced
    with a value of the spec's attribute taken from a random entry below the
    base, or, with the spec's ``no_result_probability`` (and whenever no entry
    below the base has the attribute), with a value that matches nothing.
    """
    if count <= 0 or not specs:
        return []
    rng = rng if rng is not None else random
    bases = _search_bases(roots, suffix)

    weights = [spec.weight for spec in specs]
    queries: list[SearchQuery] = []
    for _ in range(count):
        spec = rng.choices(specs, weights=weights)[0]
        base, scope = rng.choice(bases)
        candidates = [e for e in scope if spec.attribute in e.attributes]

        if candidates and rng.random() >= spec.no_result_probability:
            value = rng.choice(candidates).attributes[spec.attribute]
            expect_results = True
        else:
            value = no_match_value(rng)
            expect_results = False

        queries.append(
            SearchQuery(
                base=base,
                filter=spec.filter.replace(PLACEHOLDER, escape_filter_chars(value)),
                expect_results=expect_results,
            )
        )
    return queries
