"""Append-only audit log helpers."""

import uuid
from typing import Optional

from services.courts_service.models import AuditAction, AuditEntry
from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession


def record_audit(
    session: AsyncSession,
    actor_id: Optional[uuid.UUID],
    action: AuditAction,
    detail: str = "",
) -> AuditEntry:
    """Stage an audit entry in the caller's transaction."""
    entry = AuditEntry(actor_id=actor_id, action=action, detail=detail)
    session.add(entry)
    return entry


async def list_audit(
    session: AsyncSession, *, limit: int = 200, offset: int = 0
) -> list[AuditEntry]:
    query = (
        select(AuditEntry)
        .order_by(desc(AuditEntry.at), desc(AuditEntry.id))
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(query)
    return list(result.scalars().all())
