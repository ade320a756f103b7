"""Propagate an upstream release to its website, integrations and distributions."""

__version__ = "0.1.0"
