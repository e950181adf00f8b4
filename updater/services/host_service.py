"""Host registry: the identity under which install progress is recorded."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from updater.exceptions import NotFoundError
from updater.models.host import Host
from updater.services.datetime_service import timestamp

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


async def ensure_host(session: AsyncSession, name: str) -> Host:
    """Return the host row for *name*, creating it on first use.

    Raises ValueError for a blank name.
    """
    name = name.strip()
    if not name:
        raise ValueError("Host name must not be empty")

    result = await session.execute(select(Host).where(Host.name == name))
    host = result.scalar_one_or_none()
    if host is not None:
        logger.info("Found host %r in database", name)
        return host

    logger.warning("Host %r not found in database, adding", name)
    stmt = (
        sqlite_insert(Host)
        .values(name=name, added_at=timestamp())
        .on_conflict_do_nothing(index_elements=[Host.name])
    )
    await session.execute(stmt)
    await session.commit()
    result = await session.execute(select(Host).where(Host.name == name))
    return result.scalar_one()


async def get_host(session: AsyncSession, host_id: int) -> Host:
    """Fetch a host by id or raise NotFoundError."""
    host = await session.get(Host, host_id)
    if host is None:
        raise NotFoundError(f"Host {host_id} not found")
    return host
