"""
Audit Core - append-only, fire-and-forget audit trail.
"""

from src.kernel.audit.audit_log import AuditLog, AuditRecord, serialize_details

__all__ = [
    "AuditLog",
    "AuditRecord",
    "serialize_details",
]
