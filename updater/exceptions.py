"""Application-level exception types.

Convention:
- ``ConfigError``: invalid or missing base path or required dependency.
  Fatal at startup; the process exits 1 before any reconciliation.
- ``FilesystemError``: a directory or store file cannot be read or written.
  Raised during a reconciliation pass it aborts the whole pass.
- ``StoreError``: constraint violation or unexpected persistence failure.
- ``NotFoundError``: a referenced update, file or host id does not exist.
- ``ValueError``: for invalid caller input (bad ids, contradictory flags).
"""

from __future__ import annotations


class UpdaterError(Exception):
    """Base class for every expected failure of the updater core."""


class ConfigError(UpdaterError):
    """Raised when configuration is invalid or a required dependency is missing."""


class FilesystemError(UpdaterError):
    """Raised when the base path, an update directory or the store is inaccessible."""


class StoreError(UpdaterError):
    """Raised when the persistent store rejects or fails an operation."""


class NotFoundError(UpdaterError):
    """Raised when a referenced update, file or host is absent."""
