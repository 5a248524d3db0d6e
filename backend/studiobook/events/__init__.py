"""Audit event primitives."""

from .audit import AuditEvent, AuditHook, AuditHooks

__all__ = ["AuditEvent", "AuditHook", "AuditHooks"]
