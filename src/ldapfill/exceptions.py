"""Exceptions raised by ldapfill."""

from __future__ import annotations


class LdapfillError(Exception):
    """Base class for all errors reported to the user."""


class FileError(LdapfillError):
    """Raised when a source file is missing, unreadable or empty."""


class ConfigError(LdapfillError):
    """Raised when the configuration or format file is inconsistent."""


class GenerationError(LdapfillError):
    """Raised when an entry cannot be generated (e.g. its RDN resolved to "")."""

    def __init__(self, message: str, path: str) -> None:
        super().__init__(f"{message} (at {path})")
        self.path = path


class ParseError(LdapfillError):
    """Raised when a modifier expression is malformed."""

    def __init__(self, message: str, text: str, position: int) -> None:
        self.message = message
        self.text = text
        self.position = position
        super().__init__(self._render())

    def _render(self) -> str:
        caret = " " * self.position + "^"
        return f"{self.message} at position {self.position}\n  {self.text}\n  {caret}"
