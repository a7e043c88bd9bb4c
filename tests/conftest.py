"""Shared pytest fixtures for ldapfill tests."""

from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from ldapfill.sources import SourcePool

FORMAT_TOML = """\
[hierarchy]
order = ["organizationalUnit", "inetOrgPerson"]
counts = [2, 3]

[organizationalUnit]
rdn = "ou"
object-classes = ["top", "organizationalUnit"]

[organizationalUnit.attributes]
ou = 'file("departments.txt")'
description = 'combine("Department of ", file("departments.txt"))'

[inetOrgPerson]
rdn = "uid"
object-classes = ["top", "person", "inetOrgPerson"]

[inetOrgPerson.attributes]
uid = 'lowercase(combine(file("givenname.txt"), ".", file("sn.txt")))'
givenName = 'file("givenname.txt")'
sn = 'file("sn.txt")'
cn = 'combine(file("givenname.txt"), " ", uppercase(file("sn.txt")))'

[[queries]]
filter = "(uid={value})"
attribute = "uid"
no-result-probability = 0.25
"""


class FixedChoice:
    """Stand-in for random.Random whose ``choice`` walks a fixed index sequence."""

    def __init__(self, indexes):
        self.indexes = list(indexes)
        self.calls = 0

    def choice(self, seq):
        index = self.indexes[self.calls % len(self.indexes)]
        self.calls += 1
        return seq[index % len(seq)]


@pytest.fixture()
def pool() -> SourcePool:
    """An in-memory pool with a few small sources."""
    return SourcePool.from_lines(
        {
            "names.txt": ["Alice", "Bob", "Carol", "Dave"],
            "sn.txt": ["Smith", "Jones"],
            "single.txt": ["only"],
            "maybe_empty.txt": ["", "x"],
        }
    )


@pytest.fixture()
def format_dir(tmp_path: Path) -> Path:
    """A directory holding a valid format file and its source files."""
    (tmp_path / "departments.txt").write_text("Sales\nEngineering\n# comment\n\nLegal\n")
    (tmp_path / "givenname.txt").write_text("Alice\nBob\nCarol\n")
    (tmp_path / "sn.txt").write_text("Smith\nJones\n")
    (tmp_path / "format.toml").write_text(FORMAT_TOML)
    return tmp_path


@pytest.fixture()
def format_file(format_dir: Path) -> Path:
    return format_dir / "format.toml"


def write_format(directory: Path, body: str) -> Path:
    """Write a dedented format file into *directory* and return its path."""
    path = directory / "format.toml"
    path.write_text(textwrap.dedent(body))
    return path
