"""Build the tree of generated entries from a validated hierarchy."""

from __future__ import annotations

import logging
import random
import weakref
from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence

from ldapfill.evaluator import evaluate
from ldapfill.exceptions import ConfigError, GenerationError
from ldapfill.models import Entry, EntryTemplate, HierarchyLevel, join_dn, make_rdn

logger = logging.getLogger(__name__)


def make_hierarchy(
    templates: Mapping[str, EntryTemplate],
    order: Sequence[str],
    counts: Sequence[int],
) -> list[HierarchyLevel]:
    """Pair each template name in *order* with its per-parent count.

    Raises:
        ConfigError: If the hierarchy is empty, the two sequences differ in
            length, a name is not a known template or a count is not a
            non-negative integer.
    """
    if not order:
        raise ConfigError("Hierarchy must name at least one object class")
    if len(order) != len(counts):
        raise ConfigError(
            f"Hierarchy has {len(order)} level(s) but {len(counts)} count(s)"
        )

    levels: list[HierarchyLevel] = []
    for depth, (name, count) in enumerate(zip(order, counts)):
        template = templates.get(name)
        if template is None:
            known = ", ".join(sorted(templates)) or "none"
            raise ConfigError(
                f"Hierarchy level {depth} references unknown object class {name!r} "
                f"(known: {known})"
            )
        # bool is an int subclass; ``true`` in a TOML list is not a count
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ConfigError(
                f"Count for hierarchy level {depth} ({name}) must be a "
                f"non-negative integer, got {count!r}"
            )
        levels.append(HierarchyLevel(template=template, count=count))
    return levels


def level_totals(hierarchy: Sequence[HierarchyLevel]) -> list[int]:
    """Number of entries generated at each level."""
    totals: list[int] = []
    running = 1
    for level in hierarchy:
        running *= level.count
        totals.append(running)
    return totals


def total_entries(hierarchy: Sequence[HierarchyLevel]) -> int:
    """Total number of entries :func:`build_tree` will create."""
    return sum(level_totals(hierarchy))


def instantiate(
    template: EntryTemplate,
    parent: Entry | None = None,
    suffix: str = "",
    rng: random.Random | None = None,
) -> Entry:
    """Create one entry from *template*, evaluating every attribute afresh.

    The entry's DN is its RDN joined with the parent's DN, or with *suffix*
    for entries without a parent.  The entry is not attached to *parent*.

    Raises:
        GenerationError: If the RDN attribute resolved to an empty string.
    """
    attributes = {name: evaluate(expr, rng) for name, expr in template.attributes.items()}
    rdn_value = attributes[template.rdn]
    parent_dn = parent.dn if parent is not None else suffix

    if not rdn_value:
        raise GenerationError(
            f"RDN attribute {template.rdn!r} of {template.name!r} resolved to an empty value",
            path=parent_dn or "<root>",
        )

    return Entry(
        template=template,
        attributes=attributes,
        rdn_value=rdn_value,
        dn=join_dn(make_rdn(template.rdn, rdn_value), parent_dn),
        _parent=weakref.ref(parent) if parent is not None else None,
    )


def build_tree(
    hierarchy: Sequence[HierarchyLevel],
    suffix: str = "",
    rng: random.Random | None = None,
    on_entry: Callable[[Entry], None] | None = None,
) -> list[Entry]:
    """Generate the whole entry tree, level by level.

    Level 0 produces ``hierarchy[0].count`` root entries; every entry of
    level ``i - 1`` receives ``hierarchy[i].count`` children.

    Two entries may draw the same DN.  Both are kept and a warning naming
    the first such DN is logged; importing the result into a directory fails
    at the second entry.

    Args:
        hierarchy: Levels as returned by :func:`make_hierarchy`.
        suffix: Base DN that root entries are placed under.
        rng: Random generator passed to the evaluator.
        on_entry: Called with every entry right after it is created.

    Returns:
        The root entries.  Children are reachable via ``Entry.children``.

    Raises:
        GenerationError: If any entry's RDN resolves to an empty string.
            No partial tree is returned.
    """
    roots: list[Entry] = []
    parents: list[Entry | None] = [None]
    seen: set[str] = set()
    duplicates = 0
    first_duplicate = ""

    for depth, level in enumerate(hierarchy):
        created: list[Entry] = []
        for parent in parents:
            for _ in range(level.count):
                entry = instantiate(level.template, parent=parent, suffix=suffix, rng=rng)
                if parent is None:
                    roots.append(entry)
                else:
                    parent.children.append(entry)
                created.append(entry)
                if entry.dn in seen:
                    duplicates += 1
                    first_duplicate = first_duplicate or entry.dn
                    logger.debug("Duplicate DN %s", entry.dn)
                seen.add(entry.dn)
                if on_entry is not None:
                    on_entry(entry)
        logger.debug("Level %d (%s): %d entries", depth, level.template.name, len(created))
        if not created:
            break
        parents = created

    if duplicates:
        logger.warning(
            "%d entr%s reuse the DN of an earlier entry (first: %s); "
            "the output will not import cleanly",
            duplicates,
            "y" if duplicates == 1 else "ies",
            first_duplicate,
        )
    return roots


def walk(roots: Iterable[Entry]) -> Iterator[Entry]:
    """Yield entries in pre-order: every parent before its children."""
    stack = list(reversed(list(roots)))
    while stack:
        entry = stack.pop()
        yield entry
        stack.extend(reversed(entry.children))


def containers(roots: Iterable[Entry]) -> list[Entry]:
    """Entries that have at least one child."""
    return [entry for entry in walk(roots) if entry.children]

