"""Audit trail writes and lookups."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from society_portal.models.audit_log import AuditAction, AuditEntity, AuditLog


class AuditService:
    """Record and read audit entries.

    Entries join the caller's session and are committed with the caller's
    transaction, so a rolled-back change leaves no audit entry behind.
    """

    @staticmethod
    def log(
        db: AsyncSession,
        entity_type: AuditEntity,
        entity_id: int,
        action: AuditAction,
        actor_id: int | None = None,
        changes: dict[str, Any] | None = None,
    ) -> AuditLog:
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            changes=changes,
        )
        db.add(audit)
        return audit

    @staticmethod
    async def history(
        db: AsyncSession, entity_type: AuditEntity, entity_id: int
    ) -> list[AuditLog]:
        """Audit entries for one entity, oldest first."""
        result = await db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type, AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        return list(result.scalars().all())


__all__ = ["AuditService"]
