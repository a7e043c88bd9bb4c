"""Evaluate expression trees to concrete attribute values."""

from __future__ import annotations

import json
import random
from collections.abc import Iterator

from ldapfill.models import Combine, Expression, FileRef, Literal, Lowercase, Uppercase
from ldapfill.sources import ValueSource


def evaluate(expr: Expression, rng: random.Random | None = None) -> str:
    """Resolve *expr* to a string.

    Every :class:`FileRef` is drawn independently, even when the same source
    appears several times in one tree.  Case modifiers apply to the fully
    resolved value of their argument.

    Args:
        expr: A parsed expression.
        rng: Object with a ``choice`` method (e.g. :class:`random.Random`).
            Defaults to the :mod:`random` module.
    """
    if isinstance(expr, Literal):
        return expr.text
    if isinstance(expr, FileRef):
        return expr.source.draw(rng)
    if isinstance(expr, Combine):
        return "".join(evaluate(child, rng) for child in expr.children)
    if isinstance(expr, Lowercase):
        return evaluate(expr.child, rng).lower()
    if isinstance(expr, Uppercase):
        return evaluate(expr.child, rng).upper()
    raise TypeError(f"Not an expression: {expr!r}")


def iter_sources(expr: Expression) -> Iterator[ValueSource]:
    """Yield every source referenced by *expr*, depth first."""
    if isinstance(expr, FileRef):
        yield expr.source
    elif isinstance(expr, Combine):
        for child in expr.children:
            yield from iter_sources(child)
    elif isinstance(expr, (Lowercase, Uppercase)):
        yield from iter_sources(expr.child)


def render_expression(expr: Expression) -> str:
    """Render *expr* back into modifier syntax."""
    if isinstance(expr, Literal):
        return _quote(expr.text)
    if isinstance(expr, FileRef):
        return f"file({_quote(expr.source.name)})"
    if isinstance(expr, Combine):
        return "combine(" + ", ".join(render_expression(c) for c in expr.children) + ")"
    if isinstance(expr, Lowercase):
        return f"lowercase({render_expression(expr.child)})"
    if isinstance(expr, Uppercase):
        return f"uppercase({render_expression(expr.child)})"
    raise TypeError(f"Not an expression: {expr!r}")


def _quote(text: str) -> str:
    # JSON quoting uses the same escapes the parser accepts.
    return json.dumps(text, ensure_ascii=False)
