"""Audit logging package."""

from household_ledger.audit.logger import (
    AuditLogger,
    configure_logging,
    create_correlation_id,
    resolve_log_level,
)

__all__ = [
    "AuditLogger",
    "configure_logging",
    "create_correlation_id",
    "resolve_log_level",
]
