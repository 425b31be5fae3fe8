"""Expiry detection and notification dispatch for a multi-tenant operations platform."""

__version__ = "0.1.0"
