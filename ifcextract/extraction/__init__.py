"""Relationship resolution and semantic extraction over a populated EntityStore."""

from ifcextract.extraction.pipeline import extract, extract_file

__all__ = ["extract", "extract_file"]
