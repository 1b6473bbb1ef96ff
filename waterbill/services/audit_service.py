"""Audit service for logging entity lifecycle events."""

from sqlalchemy.orm import Session

from waterbill.models.audit_log import AuditLog


class AuditService:
    """Service for audit log operations.

    Entries join the caller's transaction; they are committed (or rolled
    back) together with the change they describe.
    """

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: int | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Create audit log entry (one-liner).

        Args:
            db: Database session
            entity_type: Type of entity ("period", "reading", "payment", ...)
            entity_id: Primary key of the entity
            action: Action performed ("start", "finalize", "void", ...)
            actor_id: User who performed the action (optional)
            changes: Optional JSON snapshot of changed fields

        Returns:
            Created AuditLog object
        """
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            changes=changes,
        )
        db.add(audit)
        return audit


__all__ = ["AuditService"]
