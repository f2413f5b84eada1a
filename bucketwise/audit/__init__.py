"""Audit logging package."""

from bucketwise.audit.logger import AuditLogger, configure_logging

__all__ = ["AuditLogger", "configure_logging"]
