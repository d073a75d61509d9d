"""Postdesk: local-first markdown post editor core with git publishing."""

__version__ = "0.1.0"
