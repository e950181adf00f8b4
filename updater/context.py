"""Explicit run context shared by the services."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


@dataclass(frozen=True)
class UpdaterContext:
    """Base path and host identity for one process invocation."""

    base_path: Path
    host_id: int
    host_name: str
