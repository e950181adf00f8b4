"""Host and per-host tracking models."""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from updater.models.base import Base


class Host(Base):
    """A tracked server whose install progress is recorded."""

    __tablename__ = "hosts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    added_at: Mapped[str] = mapped_column(Text, nullable=False)


class HostUpdate(Base):
    """Rollup status of an update on a host.

    Derived from HostFile rows by the status service; never edited directly.
    """

    __tablename__ = "host_updates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    host_id: Mapped[int] = mapped_column(Integer, ForeignKey("hosts.id"), nullable=False)
    update_id: Mapped[int] = mapped_column(Integer, ForeignKey("updates.id"), nullable=False)
    installed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    failed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    empty: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (UniqueConstraint("host_id", "update_id", name="uq_host_updates_pair"),)


class HostFile(Base):
    """Install outcome of a single file on a host, as reported by the installer."""

    __tablename__ = "host_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    host_id: Mapped[int] = mapped_column(Integer, ForeignKey("hosts.id"), nullable=False)
    file_id: Mapped[int] = mapped_column(Integer, ForeignKey("files.id"), nullable=False)
    installed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    failed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    __table_args__ = (UniqueConstraint("host_id", "file_id", name="uq_host_files_pair"),)
