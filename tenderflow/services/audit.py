"""
Audit trail for procurement mutations.

Each successful mutation adds one AuditLog row to the current transaction.
The matching structured audit line is held on the session and emitted only
once the transaction commits; a rollback discards it with the row.
"""
from typing import Optional

from sqlalchemy import event
from sqlalchemy.orm import Session

from tenderflow.core.logging import audit_logger
from tenderflow.db.models import AuditLog

PENDING_AUDIT_KEY = "pending_audit"


def record_audit(
    db: Session,
    action: str,
    user_id: Optional[int],
    entity_type: str,
    entity_id: Optional[int],
    details: Optional[dict] = None,
) -> AuditLog:
    details = details or {}
    entry = AuditLog(
        user_id=user_id,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=details,
    )
    db.add(entry)
    db.info.setdefault(PENDING_AUDIT_KEY, []).append({
        "action": action,
        "user_id": user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "reference_number": details.get("reference_number"),
        "details": details,
    })
    return entry


@event.listens_for(Session, "after_commit")
def _emit_committed_audit(session: Session):
    for pending in session.info.pop(PENDING_AUDIT_KEY, []):
        audit_logger.log(**pending)


@event.listens_for(Session, "after_soft_rollback")
def _discard_rolled_back_audit(session: Session, previous_transaction):
    session.info.pop(PENDING_AUDIT_KEY, None)
