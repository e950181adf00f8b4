"""Read projections for updates and files."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field


class Status(StrEnum):
    """Rollup status of an update on a host."""

    EMPTY = "empty"
    FAILED = "failed"
    INSTALLED = "installed"
    PENDING = "pending"


class UpdateSummary(BaseModel):
    """An update as listed for a host."""

    id: int
    name: str
    status: Status = Status.PENDING


class FileSummary(BaseModel):
    """A file of an update with its install state on a host."""

    id: int
    name: str = Field(min_length=1)  # name.extension, or name alone
    installed: bool = False
    failed: bool = False
