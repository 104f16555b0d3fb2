"""Shared utility functions and models for the ClubHub session core.

Convenience re-exports so consumers can import directly from
``clubhub.utils`` while full absolute imports remain supported.
"""

from clubhub.utils.audit import AuditEvent, log_audit_event

__all__ = [
    "AuditEvent",
    "log_audit_event",
]
