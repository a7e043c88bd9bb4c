"""Line-indexed value sources backed by plain-text files."""

from __future__ import annotations

import logging
import os
import random
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path

from ldapfill.exceptions import FileError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class ValueSource:
    """The candidate values of one source file, one per line.

    Sources loaded from disk are identified by their resolved *path*: two
    sources backed by the same file compare equal however the file was
    named.  In-memory sources (no *path*) are identified by *name*.
    """

    name: str                   # as written in file("...")
    lines: tuple[str, ...] = field(repr=False)
    path: Path | None = None

    def __post_init__(self) -> None:
        if not self.lines:
            raise ValueError(f"Value source {self.name!r} has no lines")

    @property
    def key(self) -> str:
        return str(self.path) if self.path is not None else _normalize(self.name)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValueSource):
            return NotImplemented
        return self.key == other.key

    def __hash__(self) -> int:
        return hash(self.key)

    def __len__(self) -> int:
        return len(self.lines)

    def draw(self, rng: random.Random | None = None) -> str:
        """Return one uniformly chosen line.  Every call is an independent draw."""
        rng = rng if rng is not None else random
        return rng.choice(self.lines)


def _normalize(name: str) -> str:
    return os.path.normpath(name)


def _clean_lines(raw: Iterable[str]) -> tuple[str, ...]:
    stripped = (line.strip() for line in raw)
    return tuple(line for line in stripped if line and not line.startswith("#"))


def load_source(path: str | Path, name: str | None = None) -> ValueSource:
    """Load *path* into a :class:`ValueSource`.

    Leading and trailing whitespace is stripped from every line; blank lines
    and ``#`` comment lines are skipped.

    Raises:
        FileError: If the file is missing, unreadable or has no usable lines.
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise FileError(f"Source file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise FileError(f"Failed to read source file {path}: {exc}") from exc

    lines = _clean_lines(text.splitlines())
    if not lines:
        raise FileError(f"Source file {path} contains no values")

    logger.debug("Loaded %d values from %s", len(lines), path)
    return ValueSource(name=name or str(path), lines=lines, path=path.resolve())


class SourcePool:
    """Cache of loaded sources keyed by the file they come from.

    Every distinct file is loaded at most once, so ``file("a.txt")`` and
    ``file("./a.txt")`` share the same :class:`ValueSource`.  A pool without
    *base_dir* never touches the filesystem and only knows sources registered
    with :meth:`add`.
    """

    def __init__(self, base_dir: str | Path | None = None) -> None:
        self.base_dir = Path(base_dir) if base_dir is not None else None
        self._sources: dict[str, ValueSource] = {}

    @classmethod
    def from_lines(cls, mapping: Mapping[str, Iterable[str]]) -> SourcePool:
        """Build an in-memory pool, e.g. ``{"names.txt": ["alice", "bob"]}``."""
        pool = cls()
        for name, lines in mapping.items():
            pool.add(ValueSource(name=name, lines=tuple(lines)))
        return pool

    def add(self, source: ValueSource) -> None:
        self._sources[source.key] = source

    def resolve(self, name: str) -> ValueSource:
        """Return the source for *name*, loading the file on first use.

        Relative names are resolved against *base_dir*.

        Raises:
            KeyError: If the pool has no *base_dir* and *name* is unknown.
            FileError: If the file cannot be loaded.
        """
        if self.base_dir is None:
            return self._sources[_normalize(name)]

        path = (self.base_dir / name).resolve()
        source = self._sources.get(str(path))
        if source is None:
            source = load_source(path, name=name)
            self.add(source)
        return source

    def __len__(self) -> int:
        return len(self._sources)
