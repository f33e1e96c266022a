"""Tenant integration secret handling: key configuration, cipher, vault and guard."""

__version__ = "0.1.0"
