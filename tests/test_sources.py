"""Tests for ldapfill.sources."""

from __future__ import annotations

import random

import pytest

from ldapfill.exceptions import FileError
from ldapfill.sources import SourcePool, ValueSource, load_source


class TestValueSource:
    def test_empty_lines_rejected(self):
        with pytest.raises(ValueError):
            ValueSource(name="empty.txt", lines=())

    def test_in_memory_equality_by_name(self):
        a = ValueSource(name="names.txt", lines=("a",))
        b = ValueSource(name="names.txt", lines=("a", "b"))
        assert a == b
        assert hash(a) == hash(b)

    def test_different_names_not_equal(self):
        assert ValueSource(name="a", lines=("x",)) != ValueSource(name="b", lines=("x",))

    def test_equality_by_path(self, tmp_path):
        a = ValueSource(name="a.txt", lines=("x",), path=tmp_path / "a.txt")
        b = ValueSource(name="./a.txt", lines=("x",), path=tmp_path / "a.txt")
        assert a == b
        assert hash(a) == hash(b)

    def test_same_name_different_paths_not_equal(self, tmp_path):
        a = ValueSource(name="a.txt", lines=("x",), path=tmp_path / "one" / "a.txt")
        b = ValueSource(name="a.txt", lines=("x",), path=tmp_path / "two" / "a.txt")
        assert a != b

    def test_draw_returns_a_line(self):
        source = ValueSource(name="n", lines=("a", "b", "c"))
        for _ in range(20):
            assert source.draw() in source.lines

    def test_draw_uses_rng(self):
        source = ValueSource(name="n", lines=("a", "b", "c"))
        values_1 = [source.draw(random.Random(5)) for _ in range(3)]
        values_2 = [source.draw(random.Random(5)) for _ in range(3)]
        assert values_1 == values_2

    def test_draw_covers_all_lines(self):
        source = ValueSource(name="n", lines=("a", "b", "c"))
        rng = random.Random(1)
        assert {source.draw(rng) for _ in range(200)} == {"a", "b", "c"}


class TestLoadSource:
    def test_strips_and_skips_blank_and_comment_lines(self, tmp_path):
        path = tmp_path / "names.txt"
        path.write_text("  Alice  \n\n# a comment\nBob\n   \n")
        source = load_source(path)
        assert source.lines == ("Alice", "Bob")

    def test_name_defaults_to_path(self, tmp_path):
        path = tmp_path / "names.txt"
        path.write_text("Alice\n")
        source = load_source(path)
        assert source.name == str(path)
        assert source.path == path.resolve()

    def test_explicit_name(self, tmp_path):
        path = tmp_path / "names.txt"
        path.write_text("Alice\n")
        assert load_source(path, name="names.txt").name == "names.txt"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileError, match="not found"):
            load_source(tmp_path / "missing.txt")

    def test_file_without_values(self, tmp_path):
        path = tmp_path / "empty.txt"
        path.write_text("\n  \n# only comments\n")
        with pytest.raises(FileError, match="no values"):
            load_source(path)

    def test_directory_is_unreadable(self, tmp_path):
        with pytest.raises(FileError):
            load_source(tmp_path)

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "bin.txt"
        path.write_bytes(b"\xff\xfe\xfa")
        with pytest.raises(FileError):
            load_source(path)


class TestSourcePool:
    def test_from_lines(self):
        pool = SourcePool.from_lines({"a.txt": ["x", "y"]})
        assert len(pool) == 1
        assert pool.resolve("a.txt").lines == ("x", "y")
        assert pool.resolve("./a.txt") is pool.resolve("a.txt")

    def test_unknown_name_without_base_dir(self):
        pool = SourcePool()
        with pytest.raises(KeyError):
            pool.resolve("a.txt")

    def test_loads_relative_to_base_dir(self, tmp_path):
        (tmp_path / "a.txt").write_text("x\n")
        pool = SourcePool(tmp_path)
        assert pool.resolve("a.txt").lines == ("x",)

    def test_same_name_loaded_once(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("x\n")
        pool = SourcePool(tmp_path)
        first = pool.resolve("a.txt")
        path.write_text("changed\n")
        assert pool.resolve("a.txt") is first
        assert len(pool) == 1

    def test_spellings_of_one_file_share_a_source(self, tmp_path):
        (tmp_path / "sub").mkdir()
        (tmp_path / "a.txt").write_text("x\n")
        pool = SourcePool(tmp_path)
        first = pool.resolve("a.txt")
        assert pool.resolve("./a.txt") is first
        assert pool.resolve("sub/../a.txt") is first
        assert pool.resolve(str(tmp_path / "a.txt")) is first
        assert len(pool) == 1
        assert first.name == "a.txt"

    def test_absolute_name(self, tmp_path):
        other = tmp_path / "elsewhere"
        other.mkdir()
        path = other / "a.txt"
        path.write_text("x\n")
        pool = SourcePool(tmp_path / "base")
        assert pool.resolve(str(path)).lines == ("x",)

    def test_missing_file_raises_file_error(self, tmp_path):
        pool = SourcePool(tmp_path)
        with pytest.raises(FileError):
            pool.resolve("missing.txt")
        assert len(pool) == 0
