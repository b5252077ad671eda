"""
Application numbers (APP000001, APP000002, ...).

Numbers come from a named counter row that is incremented in place, so two
concurrent submissions can never read the same value: the UPDATE takes the
row lock and the increment commits or rolls back with the application insert.
"""
from __future__ import annotations

import logging

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from models import Application, ApplicationSequence

logger = logging.getLogger(__name__)

APPLICATION_SEQUENCE = "applications"


def format_application_number(value: int, prefix: str = "APP", width: int = 6) -> str:
    return f"{prefix}{value:0{width}d}"


async def _increment(session: AsyncSession, name: str) -> int | None:
    result = await session.execute(
        update(ApplicationSequence)
        .where(ApplicationSequence.name == name)
        .values(value=ApplicationSequence.value + 1)
        .returning(ApplicationSequence.value)
        .execution_options(synchronize_session=False)
    )
    return result.scalar_one_or_none()


async def next_sequence_value(session: AsyncSession, name: str = APPLICATION_SEQUENCE) -> int:
    """
    Increment-and-get on the named counter. The first call creates the row,
    starting after any applications already numbered.
    """
    value = await _increment(session, name)
    if value is not None:
        return value

    existing = await session.execute(
        select(func.count()).select_from(Application).where(Application.application_number.is_not(None))
    )
    start = int(existing.scalar_one() or 0) + 1
    try:
        async with session.begin_nested():
            session.add(ApplicationSequence(name=name, value=start))
            await session.flush()
        logger.info("Created sequence %r starting at %d", name, start)
        return start
    except IntegrityError:
        # Another request created the row first
        value = await _increment(session, name)
        if value is None:
            raise
        return value


async def assign_application_number(
    session: AsyncSession, application: Application, prefix: str = "APP", width: int = 6
) -> str:
    """Give the application its number unless it already has one. Numbers are never reassigned."""
    if application.application_number:
        return application.application_number
    value = await next_sequence_value(session)
    application.application_number = format_application_number(value, prefix, width)
    return application.application_number
