"""Rich-based formatters for ldapfill output."""

from __future__ import annotations

from collections.abc import Sequence

from rich.table import Table
from rich.text import Text
from rich.tree import Tree

from ldapfill.evaluator import render_expression
from ldapfill.models import Entry, EntryTemplate, HierarchyLevel
from ldapfill.tree import level_totals

_MAX_VALUE_LEN = 60

# one colour per hierarchy depth, cycling for deep trees
_DEPTH_STYLES = ("bold blue", "bold green", "bold cyan", "bold magenta", "bold yellow")


def _truncate(value: str) -> str:
    if len(value) <= _MAX_VALUE_LEN:
        return value
    return value[:_MAX_VALUE_LEN] + "…"


def _entry_label(entry: Entry, depth: int, show_values: bool) -> Text:
    """Build a Rich :class:`Text` label for one entry."""
    label = Text()
    label.append(entry.rdn, style=_DEPTH_STYLES[depth % len(_DEPTH_STYLES)])
    label.append(f" [{entry.object_class}]", style="dim")

    if show_values:
        for attr, value in entry.attributes.items():
            if attr == entry.rdn_attribute:
                continue
            label.append(f"\n{attr}: ", style="dim")
            label.append(_truncate(value), style="italic")
    return label


def _add_entries(
    rich_tree: Tree,
    entries: Sequence[Entry],
    depth: int,
    show_values: bool,
    max_children: int | None,
) -> None:
    """Recursively add *entries* (and their children) to *rich_tree*."""
    shown = entries if max_children is None else entries[:max_children]
    for entry in shown:
        branch = rich_tree.add(_entry_label(entry, depth, show_values))
        _add_entries(branch, entry.children, depth + 1, show_values, max_children)

    hidden = len(entries) - len(shown)
    if hidden > 0:
        rich_tree.add(Text(f"… {hidden} more", style="dim"))


def render_tree(
    roots: Sequence[Entry],
    suffix: str = "",
    show_values: bool = False,
    max_children: int | None = None,
) -> Tree:
    """Render the generated entry tree using Rich.

    Args:
        roots: Root entries as returned by :func:`~ldapfill.tree.build_tree`.
        suffix: Base DN shown as the tree's root label.
        show_values: When *True*, every attribute value is listed under its entry.
        max_children: Show at most this many entries per parent; the rest are
            summarised as "… N more".

    Returns:
        A :class:`rich.tree.Tree` ready to be printed.
    """
    rich_root = Tree(Text(suffix or "(root)", style="bold white"))
    _add_entries(rich_root, roots, 0, show_values, max_children)
    return rich_root


def render_hierarchy(levels: Sequence[HierarchyLevel]) -> Table:
    """Render a table of hierarchy levels with per-level entry totals."""
    totals = level_totals(levels)
    table = Table(title="Hierarchy", show_lines=False)
    table.add_column("Level", justify="right", style="dim")
    table.add_column("Object class", style="bold")
    table.add_column("RDN", style="cyan")
    table.add_column("Per parent", justify="right")
    table.add_column("Entries", justify="right", style="green")

    for depth, (level, total) in enumerate(zip(levels, totals)):
        table.add_row(
            str(depth),
            level.template.name,
            level.template.rdn,
            str(level.count),
            str(total),
        )

    table.caption = f"{sum(totals)} entries in total"
    return table


def render_template(template: EntryTemplate) -> Table:
    """Render the attributes of *template* with their expressions."""
    table = Table(title=f"{template.name} ({', '.join(template.object_classes)})")
    table.add_column("Attribute", style="bold")
    table.add_column("Expression")

    for attr, expr in template.attributes.items():
        name = Text(attr)
        if attr == template.rdn:
            name.append(" (rdn)", style="cyan")
        table.add_row(name, Text(render_expression(expr), style="italic"))
    return table
