"""Write generated entries as LDIF or as one CSV file per object class."""

from __future__ import annotations

import base64
import csv
import logging
import re
from collections.abc import Iterable
from pathlib import Path
from typing import IO, Any

from ldapfill.models import Entry

logger = logging.getLogger(__name__)

LDIF_COLUMNS = 76

# SAFE-STRING from RFC 2849: no NUL/LF/CR, must not start with space, ':' or '<'
_SAFE_STRING_RE = re.compile(
    r"""
    ^(?:
        [\x01-\x09\x0b\x0c\x0e-\x1f\x21-\x39\x3b\x3d-\x7f]   # SAFE-INIT-CHAR
        [\x01-\x09\x0b\x0c\x0e-\x7f]*                         # SAFE-CHAR
    )?$
    """,
    re.VERBOSE,
)


def _is_safe(value: str) -> bool:
    return bool(_SAFE_STRING_RE.match(value)) and not value.endswith(" ")


def _fold(line: str) -> str:
    """Wrap *line* into continuation lines of at most LDIF_COLUMNS chars."""
    if len(line) <= LDIF_COLUMNS:
        return line
    parts = [line[:LDIF_COLUMNS]]
    rest = line[LDIF_COLUMNS:]
    step = LDIF_COLUMNS - 1
    while rest:
        parts.append(" " + rest[:step])
        rest = rest[step:]
    return "\n".join(parts)


def ldif_line(attribute: str, value: str) -> str:
    """Render one ``attribute: value`` line, base64-encoding unsafe values."""
    if _is_safe(value):
        return _fold(f"{attribute}: {value}")
    encoded = base64.b64encode(value.encode("utf-8")).decode("ascii")
    return _fold(f"{attribute}:: {encoded}")


def entry_to_ldif(entry: Entry) -> str:
    """Render *entry* as an LDIF record, attributes in template order."""
    lines = [ldif_line("dn", entry.dn)]
    lines.extend(ldif_line("objectClass", oc) for oc in entry.template.object_classes)
    lines.extend(ldif_line(attr, value) for attr, value in entry.attributes.items())
    return "\n".join(lines) + "\n\n"


def write_ldif(entries: Iterable[Entry], fh: IO[str]) -> int:
    """Write *entries* to *fh* and return the number of records written.

    Entries must come parents-first (see :func:`ldapfill.tree.walk`) for the
    file to be importable.
    """
    written = 0
    for entry in entries:
        fh.write(entry_to_ldif(entry))
        written += 1
    logger.debug("Wrote %d LDIF record(s)", written)
    return written


class CsvExporter:
    """Append entries to ``<target_dir>/<object class>.csv``.

    Files are opened on the first entry of each object class and start with a
    header row: ``dn`` followed by the attributes in template order.
    """

    def __init__(self, target_dir: str | Path) -> None:
        self.target_dir = Path(target_dir)
        self.written = 0
        self._files: dict[str, IO[str]] = {}
        self._writers: dict[str, Any] = {}
        self._columns: dict[str, list[str]] = {}

    def __enter__(self) -> CsvExporter:
        self.target_dir.mkdir(parents=True, exist_ok=True)
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _writer_for(self, entry: Entry) -> tuple[Any, list[str]]:
        name = entry.object_class
        if name not in self._writers:
            path = self.target_dir / f"{name}.csv"
            fh = open(path, "w", newline="", encoding="utf-8")
            writer = csv.writer(fh)
            columns = list(entry.attributes)
            writer.writerow(["dn", *columns])
            self._files[name] = fh
            self._writers[name] = writer
            self._columns[name] = columns
            logger.debug("Opened %s", path)
        return self._writers[name], self._columns[name]

    def write(self, entry: Entry) -> None:
        writer, columns = self._writer_for(entry)
        writer.writerow([entry.dn, *(entry.attributes[c] for c in columns)])
        self.written += 1

    def write_all(self, entries: Iterable[Entry]) -> int:
        for entry in entries:
            self.write(entry)
        return self.written

    @property
    def paths(self) -> list[Path]:
        return [self.target_dir / f"{name}.csv" for name in self._columns]

    def close(self) -> None:
        for fh in self._files.values():
            fh.close()
        self._files.clear()
        self._writers.clear()
