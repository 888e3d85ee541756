from datetime import datetime, timezone
import uuid
from sqlalchemy.ext.asyncio import AsyncSession
from app.models.audit import AuditLog

class AuditService:
    @staticmethod
    async def log_action(
        db: AsyncSession,
        user_id: uuid.UUID | None,
        action: str,
        target_id: str | None = None,
        details: str | None = None
    ):
        """
        Log an audit event.

        The entry joins the caller's transaction and is only persisted when the
        caller commits, so a rolled-back transition leaves no audit trail.
        """
        audit_entry = AuditLog(
            user_id=user_id,
            action=action,
            target_id=target_id,
            details=details,
            timestamp=datetime.now(timezone.utc)
        )
        db.add(audit_entry)
