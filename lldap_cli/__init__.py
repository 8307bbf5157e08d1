"""Command-line client for the LLDAP management API."""

__version__ = "0.1.0"
