"""utilities for quorum"""
from .caching import TTLCache, NullCache, content_hash
from .correlation import auditcontext, get_audit_id, AuditIdFilter
from .validation import InputValidator, ValidationResult, require_valid_source

__all__ = [
    "TTLCache",
    "NullCache",
    "content_hash",
    "auditcontext",
    "get_audit_id",
    "AuditIdFilter",
    "InputValidator",
    "ValidationResult",
    "require_valid_source",
]
