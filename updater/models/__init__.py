"""SQLAlchemy ORM models for the server updater."""

from updater.models.base import Base
from updater.models.host import Host, HostFile, HostUpdate
from updater.models.update import File, Update

__all__ = [
    "Base",
    "File",
    "Host",
    "HostFile",
    "HostUpdate",
    "Update",
]
