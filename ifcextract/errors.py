"""Exceptions raised by the extraction engine."""

from __future__ import annotations


class ExtractionError(Exception):
    """Base class for every error the engine raises."""


class RecordSyntaxError(ExtractionError):
    """Raised when one record cannot be tokenized or parsed.

    The document reader turns this into a diagnostic and moves on to the next
    record, unless strict parsing is enabled.
    """

    def __init__(self, message: str, line: int = 0, column: int = 0) -> None:
        super().__init__(message)
        self.message = message
        self.line = line
        self.column = column

    def __str__(self) -> str:
        return f"line {self.line}, column {self.column}: {self.message}"


class DiagnosticLimitExceeded(ExtractionError):
    """Raised when more diagnostics were collected than the configured ceiling."""

    def __init__(self, limit: int, diagnostics: list | None = None) -> None:
        super().__init__(f"Aborted after exceeding {limit} diagnostics")
        self.limit = limit
        self.diagnostics = diagnostics or []


class InvalidInputError(ExtractionError):
    """Raised when the input is not a text document."""
