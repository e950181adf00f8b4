"""Update and file models (mirrored from the base path)."""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from updater.models.base import Base


class Update(Base):
    """An update bundle: one directory under the base path.

    ``deleted`` is tri-state: NULL (never marked), False, True. Once True it
    is never reset.
    """

    __tablename__ = "updates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    added_at: Mapped[str] = mapped_column(Text, nullable=False)
    deleted: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    files: Mapped[list[File]] = relationship(back_populates="update")


class File(Base):
    """A file inside an update directory, split into name and extension."""

    __tablename__ = "files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    update_id: Mapped[int] = mapped_column(Integer, ForeignKey("updates.id"), nullable=False)
    name: Mapped[str] = mapped_column(Text, nullable=False)
    extension: Mapped[str] = mapped_column(Text, nullable=False, default="")
    added_at: Mapped[str] = mapped_column(Text, nullable=False)
    deleted: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    update: Mapped[Update] = relationship(back_populates="files")

    __table_args__ = (
        UniqueConstraint("name", "extension", "update_id", name="uq_files_name_ext_update"),
    )

    @property
    def display_name(self) -> str:
        """Original filename: ``name.extension`` or just ``name``."""
        if self.extension:
            return f"{self.name}.{self.extension}"
        return self.name
