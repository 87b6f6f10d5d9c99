"""
core/errors.py
--------------
Root of the tool's exception hierarchy.

The concrete error types live beside the code that raises them
(``core.catalog``, ``core.process``, ``core.artifacts``); this module only
holds the shared base so callers can catch everything the tool raises.
"""
from __future__ import annotations


class MigrationToolError(Exception):
    """Base class for all errors raised by the migration tool."""
