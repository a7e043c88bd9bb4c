"""Generate synthetic LDAP directory trees from text files and a format description."""

__version__ = "0.3.0"
