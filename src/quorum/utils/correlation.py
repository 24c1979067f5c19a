"""
audit correlation ids

the id of the audit in progress lives in a ContextVar. each asyncio task runs
in its own copy of the context, so concurrent audits on one event loop never
see each other's id. AuditIdFilter copies the id onto every log record.
"""
import logging
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

NO_AUDIT = "-"

_current_audit: ContextVar[Optional[str]] = ContextVar("quorum_audit_id", default=None)


def generate_audit_id() -> str:
    return uuid.uuid4().hex


def get_audit_id() -> Optional[str]:
    """id of the audit running in this context, or none"""
    return _current_audit.get()


@contextmanager
def auditcontext(audit_id: Optional[str] = None) -> Iterator[str]:
    """
    bind an audit id for the duration of the block. nesting restores the
    outer id on exit.

        with auditcontext() as audit_id:
            ...
    """
    token = _current_audit.set(audit_id or generate_audit_id())
    try:
        yield _current_audit.get()
    finally:
        _current_audit.reset(token)


class AuditIdFilter(logging.Filter):
    """stamps record.audit_id unless the caller passed one through extra"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "audit_id", None):
            record.audit_id = get_audit_id() or NO_AUDIT
        return True
