"""Utility modules for pvectl."""
from .logging_config import setup_logging, timed, timed_section
from .retry import with_retry, RETRYABLE_EXCEPTIONS
from .audit_log import AuditTrail, ChangeRecord, setup_audit_logging, get_recent_changes

__all__ = [
    "setup_logging",
    "timed",
    "timed_section",
    "with_retry",
    "RETRYABLE_EXCEPTIONS",
    "AuditTrail",
    "ChangeRecord",
    "setup_audit_logging",
    "get_recent_changes",
]
