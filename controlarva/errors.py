"""Exception types raised by the Controlarva services."""
from __future__ import annotations


class ControlarvaError(Exception):
    """Base class for application errors surfaced to the operator."""


class ValidationError(ControlarvaError, ValueError):
    """Raised when submitted form data cannot be saved."""


class RecordNotFoundError(ControlarvaError, KeyError):
    """Raised when an identifier does not match any stored record."""

    def __init__(self, kind: str, record_id: str):
        super().__init__(f"{kind} {record_id!r} not found")
        self.kind = kind
        self.record_id = record_id

    def __str__(self) -> str:
        return self.args[0]


class SnapshotError(ControlarvaError):
    """Raised when a persisted snapshot cannot be decoded."""


class ReportGenerationError(ControlarvaError):
    """Raised when the PDF report could not be produced."""
