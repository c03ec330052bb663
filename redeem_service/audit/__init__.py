"""Audit logging module."""
from .logger import AuditAction, AuditEvent, AuditLogger, get_audit_logger

__all__ = ["AuditAction", "AuditLogger", "AuditEvent", "get_audit_logger"]
