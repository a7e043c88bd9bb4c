"""Tests for ldapfill.exporters."""

from __future__ import annotations

import base64
import csv
import io

from ldapfill.exporters import CsvExporter, entry_to_ldif, ldif_line, write_ldif
from ldapfill.models import EntryTemplate, Literal
from ldapfill.tree import build_tree, instantiate, make_hierarchy, walk


def _person(uid: str = "test.user", sn: str = "user") -> EntryTemplate:
    return EntryTemplate(
        name="inetOrgPerson",
        attributes={"uid": Literal(uid), "sn": Literal(sn)},
        rdn="uid",
    )


class TestLdifLine:
    def test_safe_value(self):
        assert ldif_line("cn", "John Doe") == "cn: John Doe"

    def test_empty_value(self):
        assert ldif_line("description", "") == "description: "

    def test_non_ascii_is_base64(self):
        line = ldif_line("cn", "Jürgen")
        encoded = base64.b64encode("Jürgen".encode()).decode()
        assert line == f"cn:: {encoded}"

    def test_leading_space_colon_or_lt_is_base64(self):
        for value in (" lead", ":colon", "<angle"):
            assert ldif_line("cn", value).startswith("cn:: ")

    def test_trailing_space_is_base64(self):
        assert ldif_line("cn", "trail ").startswith("cn:: ")

    def test_newline_is_base64(self):
        assert ldif_line("description", "a\nb").startswith("description:: ")

    def test_long_line_folded(self):
        line = ldif_line("description", "x" * 200)
        parts = line.split("\n")
        assert len(parts[0]) == 76
        assert all(p.startswith(" ") and len(p) <= 76 for p in parts[1:])
        unfolded = parts[0] + "".join(p[1:] for p in parts[1:])
        assert unfolded == "description: " + "x" * 200


class TestLdif:
    def test_entry_record(self):
        template = EntryTemplate(
            name="inetOrgPerson",
            attributes={"uid": Literal("test.user"), "sn": Literal("user")},
            rdn="uid",
        )
        entry = instantiate(template, suffix="ou=users,dc=example,dc=org")
        assert entry_to_ldif(entry) == (
            "dn: uid=test.user,ou=users,dc=example,dc=org\n"
            "objectClass: inetOrgPerson\n"
            "uid: test.user\n"
            "sn: user\n"
            "\n"
        )

    def test_object_classes_before_attributes(self):
        template = EntryTemplate(
            name="organizationalUnit",
            attributes={"ou": Literal("People")},
            rdn="ou",
            object_classes=("top", "organizationalUnit"),
        )
        record = entry_to_ldif(instantiate(template))
        assert record.endswith("\n\n")
        assert record.rstrip("\n").splitlines() == [
            "dn: ou=People",
            "objectClass: top",
            "objectClass: organizationalUnit",
            "ou: People",
        ]

    def test_write_ldif_counts_records(self):
        template = _person()
        levels = make_hierarchy({"inetOrgPerson": template}, ["inetOrgPerson"], [4])
        fh = io.StringIO()
        assert write_ldif(walk(build_tree(levels, suffix="dc=x")), fh) == 4
        assert fh.getvalue().count("dn: ") == 4
        assert fh.getvalue().endswith("\n\n")


class TestCsvExporter:
    def test_one_file_per_object_class(self, tmp_path):
        ou = EntryTemplate(name="organizationalUnit", attributes={"ou": Literal("People")}, rdn="ou")
        levels = make_hierarchy(
            {"organizationalUnit": ou, "inetOrgPerson": _person()},
            ["organizationalUnit", "inetOrgPerson"],
            [1, 2],
        )
        roots = build_tree(levels, suffix="dc=example")
        target = tmp_path / "csv"

        with CsvExporter(target) as exporter:
            assert exporter.write_all(walk(roots)) == 3

        assert sorted(p.name for p in exporter.paths) == ["inetOrgPerson.csv", "organizationalUnit.csv"]

        with open(target / "inetOrgPerson.csv", newline="") as fh:
            rows = list(csv.reader(fh))
        assert rows[0] == ["dn", "uid", "sn"]
        assert rows[1] == ["uid=test.user,ou=People,dc=example", "test.user", "user"]
        assert len(rows) == 3

        with open(target / "organizationalUnit.csv", newline="") as fh:
            rows = list(csv.reader(fh))
        assert rows == [["dn", "ou"], ["ou=People,dc=example", "People"]]

    def test_values_with_commas_are_quoted(self, tmp_path):
        entry = instantiate(_person(uid="a", sn="Doe, John"))
        with CsvExporter(tmp_path) as exporter:
            exporter.write(entry)
        with open(tmp_path / "inetOrgPerson.csv", newline="") as fh:
            rows = list(csv.reader(fh))
        assert rows[1] == ["uid=a", "a", "Doe, John"]

    def test_creates_target_dir(self, tmp_path):
        target = tmp_path / "a" / "b"
        with CsvExporter(target):
            pass
        assert target.is_dir()
