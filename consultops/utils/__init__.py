"""Shared utility functions for the ConsultOps identity layer.

Convenience re-exports so consumers can import directly from
``consultops.utils`` while full module paths remain supported.
"""

from consultops.utils.audit import AuditEvent, log_audit_event
from consultops.utils.fan_out import Settled, run_settled
from consultops.utils.string_helpers import (
    display_name_from_email,
    email_local_part,
    emails_match,
    escape_like_pattern,
    is_blank,
    normalize_email,
)

__all__ = [
    "AuditEvent",
    "Settled",
    "display_name_from_email",
    "email_local_part",
    "emails_match",
    "escape_like_pattern",
    "is_blank",
    "log_audit_event",
    "normalize_email",
    "run_settled",
]
