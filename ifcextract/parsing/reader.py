"""Document reader: STEP text -> populated EntityStore plus diagnostics.

One forward pass splits the text into statements.  A statement ends at a
``;`` found outside string literals and ``/* ... */`` comments, so a record
may span several physical lines, a line may hold several records, and a
comment may follow the terminator.  Section markers (``HEADER;``, ``DATA;``,
``ENDSEC;``) and comments between statements are skipped.  A line that
starts a new record (or a section marker) while the previous statement is
still open closes the previous one as malformed.

A record that fails to tokenize or parse is recorded as a diagnostic and the
reader carries on with the next record, so one corrupt record never aborts
the whole file.  Only exceeding ``ParseOptions.max_diagnostics`` (or any
malformed record when ``ParseOptions.strict`` is set) is fatal.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from ifcextract.config import ParseOptions
from ifcextract.errors import DiagnosticLimitExceeded, RecordSyntaxError
from ifcextract.models.element import Diagnostic
from ifcextract.models.record import AttributeValue, ListValue, as_text, unwrap
from ifcextract.parsing.records import is_entity_line, parse_entity_record, parse_header_record
from ifcextract.parsing.store import EntityStore

logger = logging.getLogger(__name__)

_FILE_MARKERS = {"ISO-10303-21;", "END-ISO-10303-21;"}
_SECTION_END = "ENDSEC;"
_HEADER = "HEADER"
_DATA = "DATA"

# "#12=" cannot occur outside a string inside an attribute list
_RECORD_START = re.compile(r"#\d+\s*=")


@dataclass
class ParsedDocument:
    """The output of the reading pass."""

    store: EntityStore
    header: dict[str, tuple[AttributeValue, ...]] = field(default_factory=dict)
    diagnostics: list[Diagnostic] = field(default_factory=list)

    @property
    def schema_identifiers(self) -> list[str]:
        """Schema names from ``FILE_SCHEMA``, e.g. ``["IFC4"]``."""
        attributes = self.header.get("FILE_SCHEMA", ())
        if not attributes:
            return []
        schemas = unwrap(attributes[0])
        if not isinstance(schemas, ListValue):
            return []
        return [s for s in (as_text(item) for item in schemas) if s]


@dataclass
class Statement:
    """One ``;``-terminated chunk of the document and where it starts."""

    text: str
    line: int
    column: int
    terminated: bool = True
    open_string: bool = False


def _is_section_marker(upper: str) -> bool:
    return (
        upper in _FILE_MARKERS
        or upper == _SECTION_END
        or upper == f"{_HEADER};"
        or upper == f"{_DATA};"
        or upper.startswith(f"{_DATA}(")
    )


def _opens_statement(line: str) -> bool:
    head = line.strip()
    return bool(_RECORD_START.match(head)) or _is_section_marker(head.upper())


def split_statements(text: str) -> Iterator[Statement]:
    """Yield the statements of *text* in document order.

    Comments between statements are dropped; comments inside a statement are
    kept verbatim for the tokenizer to skip, so token positions stay exact.
    A statement still open when a line starts a new record or section is
    yielded with ``terminated=False``, as is one still open at end of text.
    """
    buffer: list[str] = []
    line_no, column = 0, 0
    in_string = False
    in_comment = False

    for number, line in enumerate(text.splitlines(keepends=True), start=1):
        if buffer and not in_comment and _opens_statement(line):
            yield Statement("".join(buffer).rstrip(), line_no, column, False, in_string)
            buffer = []
            in_string = False

        pos = 0
        while pos < len(line):
            char = line[pos]
            if in_comment:
                end = line.find("*/", pos)
                stop = len(line) if end == -1 else end + 2
                if buffer:
                    buffer.append(line[pos:stop])
                in_comment = end == -1
                pos = stop
                continue
            if in_string:
                if char == "\\" and pos + 1 < len(line):
                    buffer.append(line[pos:pos + 2])
                    pos += 2
                    continue
                if line.startswith("''", pos):
                    buffer.append("''")
                    pos += 2
                    continue
                buffer.append(char)
                in_string = char != "'"
                pos += 1
                continue
            if line.startswith("/*", pos):
                if buffer:
                    buffer.append("/*")
                in_comment = True
                pos += 2
                continue
            if not buffer:
                if char.isspace():
                    pos += 1
                    continue
                line_no, column = number, pos + 1
            buffer.append(char)
            pos += 1
            if char == "'":
                in_string = True
            elif char == ";":
                yield Statement("".join(buffer), line_no, column)
                buffer = []

    if buffer and "".join(buffer).strip():
        yield Statement("".join(buffer).rstrip(), line_no, column, False, in_string)


class DocumentReader:
    """Single-use reader; create one per parse session."""

    def __init__(self, options: ParseOptions | None = None) -> None:
        self.options = options or ParseOptions()
        self.store = EntityStore()
        self.header: dict[str, tuple[AttributeValue, ...]] = {}
        self.diagnostics: list[Diagnostic] = []

    def report(self, line: int, column: int, message: str, severity: str = "error") -> None:
        """Record a diagnostic, aborting once the ceiling is exceeded."""
        self.diagnostics.append(
            Diagnostic(line=line, column=column, message=message, severity=severity)
        )
        if severity == "error":
            logger.warning("Line %d, column %d: %s", line, column, message)
        else:
            logger.debug("Line %d, column %d: %s", line, column, message)

        limit = self.options.max_diagnostics
        if limit is not None and len(self.diagnostics) > limit:
            raise DiagnosticLimitExceeded(limit, self.diagnostics)

    def _syntax_error(self, error: RecordSyntaxError) -> None:
        if self.options.strict:
            raise error
        self.report(error.line, error.column, error.message)

    def _handle_record(self, statement: Statement, section: str | None) -> None:
        try:
            if section == _HEADER:
                keyword, attributes = parse_header_record(
                    statement.text, statement.line, statement.column
                )
                self.header[keyword] = attributes
                return
            record = parse_entity_record(statement.text, statement.line, statement.column)
        except RecordSyntaxError as exc:
            self._syntax_error(exc)
            return

        if self.store.add(record):
            self.report(
                statement.line,
                statement.column,
                f"Entity #{record.id} is defined more than once; the later record replaces the earlier one",
                severity="warning",
            )

    def read(self, text: str) -> ParsedDocument:
        section: str | None = None

        for statement in split_statements(text):
            body = statement.text.strip()
            is_record = section == _HEADER or is_entity_line(body)

            if not statement.terminated:
                if not is_record:
                    self.report(
                        statement.line,
                        statement.column,
                        "Skipping text that is not an entity record",
                        severity="warning",
                    )
                    continue
                message = (
                    "Unterminated string literal"
                    if statement.open_string
                    else "Record is not terminated by ';'"
                )
                self._syntax_error(RecordSyntaxError(message, statement.line, statement.column))
                continue

            upper = body.upper()
            if upper in _FILE_MARKERS:
                continue
            if upper == f"{_HEADER};":
                section = _HEADER
                continue
            if upper == f"{_DATA};" or upper.startswith(f"{_DATA}("):
                section = _DATA
                continue
            if upper == _SECTION_END:
                section = None
                continue

            if is_record:
                self._handle_record(statement, _HEADER if section == _HEADER else _DATA)
                continue

            self.report(
                statement.line,
                statement.column,
                "Skipping text that is not an entity record",
                severity="warning",
            )

        logger.info(
            "Read %d entities (%d diagnostics)", len(self.store), len(self.diagnostics)
        )
        return ParsedDocument(
            store=self.store,
            header=self.header,
            diagnostics=self.diagnostics,
        )


def read_document(text: str, options: ParseOptions | None = None) -> ParsedDocument:
    """Tokenize and parse *text* into a fresh :class:`ParsedDocument`."""
    return DocumentReader(options).read(text)
