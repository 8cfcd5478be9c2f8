"""Email log: models, SQLite storage, and the typed audit logger."""

from responder.audit.logger import AuditLogger
from responder.audit.models import AuditEntry, EventType
from responder.audit.store import init_audit_table, insert_audit_entry, query_audit_trail

__all__ = [
    "AuditEntry",
    "AuditLogger",
    "EventType",
    "init_audit_table",
    "insert_audit_entry",
    "query_audit_trail",
]
