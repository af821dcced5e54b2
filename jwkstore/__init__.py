"""Encrypted, migration-managed storage for JSON Web Key sets."""

__version__ = "1.0.0"
