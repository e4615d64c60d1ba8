# Overview: Append-only audit log writes.

from __future__ import annotations

from ..extensions import db
from ..models import AuditLogEntry


def append_audit_entry(
    *,
    table_name: str,
    record_id: int | str,
    action: str,
    user_id: int | None = None,
    new_data: dict | None = None,
) -> AuditLogEntry:
    """
    Append one audit row inside the caller's transaction.

    - No domain logic here.
    - No deletes/updates of existing rows.
    """
    entry = AuditLogEntry(
        table_name=table_name,
        record_id=str(record_id),
        action=action,
        user_id=user_id,
        new_data=new_data,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_audit_entries(table_name: str, record_id: int | str) -> list[AuditLogEntry]:
    return (
        db.session.query(AuditLogEntry)
        .filter_by(table_name=table_name, record_id=str(record_id))
        .order_by(AuditLogEntry.id.asc())
        .all()
    )
