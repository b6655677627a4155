"""ifcextract: semantic data extraction from IFC exchange files (ISO 10303-21)."""

__version__ = "1.0.0"

from ifcextract.config import ParseOptions
from ifcextract.errors import (
    DiagnosticLimitExceeded,
    ExtractionError,
    InvalidInputError,
    RecordSyntaxError,
)
from ifcextract.extraction import extract, extract_file
from ifcextract.models.element import (
    Diagnostic,
    ExtractedElement,
    ExtractionResult,
    GeometryReference,
    MaterialFact,
    StoreySummary,
)
from ifcextract.parsing.reader import ParsedDocument, read_document
from ifcextract.parsing.store import EntityStore

__all__ = [
    "Diagnostic",
    "DiagnosticLimitExceeded",
    "EntityStore",
    "ExtractedElement",
    "ExtractionError",
    "ExtractionResult",
    "GeometryReference",
    "InvalidInputError",
    "MaterialFact",
    "ParseOptions",
    "ParsedDocument",
    "RecordSyntaxError",
    "StoreySummary",
    "extract",
    "extract_file",
    "read_document",
]
