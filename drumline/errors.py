"""
drumline.errors
~~~~~~~~~~~~~~~
Exception taxonomy shared by every execution context.
"""

from __future__ import annotations


class DrumlineError(Exception):
    def __init__(self, msg: str):
        self.msg = msg
        super().__init__(msg)


class ValidationError(DrumlineError):
    """Malformed time-window spec. Raised before any mutation."""


class StorageError(DrumlineError):
    """Persistence read/write failure. Never aborts a mutation."""


class ProtocolError(DrumlineError):
    """Contract violation between collaborators (unknown category, missing context)."""


class PreconditionError(DrumlineError):
    """Removal requested for a hostname that has no matching rule."""

    def __init__(self, hostname: str, action: str):
        self.hostname = hostname
        self.action = action
        super().__init__(f"No rule found for hostname {hostname} ({action})")
