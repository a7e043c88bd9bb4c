"""Load the tool configuration and the format file.

Two TOML files drive a run.  The tool configuration holds defaults::

    log = "info"

    [defaults]
    format-file = "/etc/ldapfill/format.toml"
    base = "dc=example,dc=org"
    seed = 42
    csv-dir = "out/csv"

The format file describes the entries and how they nest::

    [hierarchy]
    order = ["organizationalUnit", "inetOrgPerson"]
    counts = [3, 100]

    [organizationalUnit]
    rdn = "ou"
    object-classes = ["top", "organizationalUnit"]

    [organizationalUnit.attributes]
    ou = 'file("departments.txt")'

    [[queries]]
    filter = "(uid={value})"
    attribute = "uid"
    no-result-probability = 0.2
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ldapfill.evaluator import iter_sources
from ldapfill.exceptions import ConfigError, ParseError
from ldapfill.models import EntryTemplate, Expression, HierarchyLevel
from ldapfill.parser import parse_expression
from ldapfill.queries import QuerySpec
from ldapfill.sources import SourcePool
from ldapfill.tree import make_hierarchy

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "/etc/ldapfill.toml"

LOG_LEVELS = {
    "off": logging.CRITICAL + 10,
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": logging.DEBUG,
}

_RESERVED_SECTIONS = ("hierarchy", "queries")
_TEMPLATE_KEYS = {"rdn", "object-classes", "attributes"}


@dataclass
class Config:
    """Tool settings; command-line options take precedence over these."""

    log: str = "info"
    format_file: Path | None = None
    base: str = ""
    seed: int | None = None
    csv_dir: Path | None = None

    @property
    def log_level(self) -> int:
        return LOG_LEVELS[self.log]


@dataclass
class Format:
    """A fully parsed and validated format file."""

    templates: dict[str, EntryTemplate]
    hierarchy: list[HierarchyLevel]
    queries: list[QuerySpec] = field(default_factory=list)
    sources: SourcePool = field(default_factory=SourcePool)


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except FileNotFoundError as exc:
        raise ConfigError(f"File not found: {path}") from exc
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc


def load_config(path: str | Path | None = None, required: bool = False) -> Config:
    """Load the tool configuration from *path*.

    A missing file yields the defaults unless *required* is set (the user
    named the file explicitly).

    Raises:
        ConfigError: If the file is required but missing, or is invalid.
    """
    path = Path(path or DEFAULT_CONFIG_FILE)
    if not path.exists() and not required:
        logger.debug("No configuration at %s, using defaults", path)
        return Config()

    data = _read_toml(path)
    log = str(data.get("log", "info")).lower()
    if log not in LOG_LEVELS:
        raise ConfigError(
            f"Invalid log level {log!r} in {path}; expected one of {', '.join(LOG_LEVELS)}"
        )

    defaults = data.get("defaults", {})
    if not isinstance(defaults, dict):
        raise ConfigError(f"[defaults] in {path} must be a table")

    seed = defaults.get("seed")
    if seed is not None and (isinstance(seed, bool) or not isinstance(seed, int)):
        raise ConfigError(f"defaults.seed in {path} must be an integer, got {seed!r}")

    # Relative paths in the config are relative to the config file itself.
    def _path(key: str) -> Path | None:
        value = defaults.get(key)
        if value is None:
            return None
        return path.parent / Path(str(value)).expanduser()

    return Config(
        log=log,
        format_file=_path("format-file"),
        base=str(defaults.get("base", "")),
        seed=seed,
        csv_dir=_path("csv-dir"),
    )


def _parse_template(name: str, section: Any, sources: SourcePool) -> EntryTemplate:
    if not isinstance(section, dict):
        raise ConfigError(f"Object class {name!r} must be a table")

    unknown = set(section) - _TEMPLATE_KEYS
    if unknown:
        raise ConfigError(
            f"Unknown key(s) in [{name}]: {', '.join(sorted(unknown))}; "
            "attributes belong in the [<class>.attributes] table"
        )

    rdn = section.get("rdn")
    if not isinstance(rdn, str) or not rdn:
        raise ConfigError(f"[{name}] must set 'rdn' to one of its attribute names")

    raw_attributes = section.get("attributes")
    if not isinstance(raw_attributes, dict) or not raw_attributes:
        raise ConfigError(f"[{name}.attributes] must define at least one attribute")

    attributes: dict[str, Expression] = {}
    for attribute, text in raw_attributes.items():
        if not isinstance(text, str):
            raise ConfigError(f"{name}.{attribute} must be a modifier expression string")
        try:
            attributes[attribute] = parse_expression(text, sources)
        except ParseError as exc:
            raise ParseError(f"{name}.{attribute}: {exc.message}", exc.text, exc.position) from exc

    object_classes = section.get("object-classes", [])
    if not isinstance(object_classes, list) or not all(isinstance(c, str) for c in object_classes):
        raise ConfigError(f"[{name}] object-classes must be a list of strings")

    return EntryTemplate(
        name=name,
        attributes=attributes,
        rdn=rdn,
        object_classes=tuple(object_classes),
    )


def _parse_queries(raw: Any, templates: dict[str, EntryTemplate]) -> list[QuerySpec]:
    if not isinstance(raw, list):
        raise ConfigError("'queries' must be an array of tables ([[queries]])")

    known_attributes = {attr for t in templates.values() for attr in t.attributes}
    specs: list[QuerySpec] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigError(f"queries[{i}] must be a table")
        try:
            spec = QuerySpec(
                filter=item["filter"],
                attribute=item["attribute"],
                no_result_probability=float(item.get("no-result-probability", 0.0)),
                weight=float(item.get("weight", 1.0)),
            )
        except KeyError as exc:
            raise ConfigError(f"queries[{i}] is missing {exc.args[0]!r}") from exc
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"queries[{i}]: {exc}") from exc
        if spec.attribute not in known_attributes:
            raise ConfigError(
                f"queries[{i}] uses attribute {spec.attribute!r}, "
                "which no object class generates"
            )
        specs.append(spec)
    return specs


def load_format(path: str | Path, data_dir: str | Path | None = None) -> Format:
    """Load and validate the format file at *path*.

    Every expression is parsed once and every referenced source file is
    loaded once, relative to *data_dir* (default: the format file's
    directory).  Nothing is generated here.

    Raises:
        ConfigError: On structural problems (hierarchy, RDN, unknown keys).
        ParseError: On a malformed expression.
        FileError: On a missing or empty source file.
    """
    path = Path(path)
    data = _read_toml(path)
    sources = SourcePool(data_dir if data_dir is not None else path.parent)

    templates: dict[str, EntryTemplate] = {}
    for name, section in data.items():
        if name in _RESERVED_SECTIONS:
            continue
        templates[name] = _parse_template(name, section, sources)

    hierarchy_section = data.get("hierarchy")
    if not isinstance(hierarchy_section, dict):
        raise ConfigError(f"{path} has no [hierarchy] table")
    order = hierarchy_section.get("order", [])
    counts = hierarchy_section.get("counts", [])
    if not isinstance(order, list) or not isinstance(counts, list):
        raise ConfigError("hierarchy.order and hierarchy.counts must be arrays")
    hierarchy = make_hierarchy(templates, order, counts)

    queries = _parse_queries(data.get("queries", []), templates)

    logger.info(
        "Loaded %d object class(es) and %d source file(s) from %s",
        len(templates),
        len(sources),
        path,
    )
    for name, template in templates.items():
        used = {s: None for expr in template.attributes.values() for s in iter_sources(expr)}
        logger.debug(
            "%s reads %s",
            name,
            ", ".join(f"{s.name} ({len(s)} values)" for s in used) or "no source files",
        )

    return Format(templates=templates, hierarchy=hierarchy, queries=queries, sources=sources)
