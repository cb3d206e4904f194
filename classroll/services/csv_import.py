"""Student name extraction from uploaded CSV text.

The header sniffing is order-sensitive: lines are scanned top
to bottom (at most ``HEADER_SCAN_LIMIT`` of them) and, for each line, the
separators are tried in ``SEPARATORS`` order. The first line/separator/column
whose cell looks like a student-name header wins, so a comma-separated header
containing "nome do aluno" already matches under ``;`` as a single cell.
"""

import logging
import re
from dataclasses import dataclass

logger = logging.getLogger(__name__)

HEADER_SCAN_LIMIT = 20
SEPARATORS = (";", ",", "\t")
FALLBACK_SEPARATOR = ","
NAME_HEADERS = ("nome do aluno", "nome", "student name")
NAME_HEADER_FRAGMENT = "nome do aluno"
MIN_NAME_LENGTH = 3

_LINE_BREAK = re.compile(r"\r\n|\n|\r")
_QUOTES = ('"', "'")
# Strings a spreadsheet would read back as a number (decimal, exponent,
# hex/octal/binary literals, infinities).
_NUMERIC = re.compile(
    r"""
    [+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?
    | 0[xX][0-9a-fA-F]+
    | 0[oO][0-7]+
    | 0[bB][01]+
    | [+-]?Infinity
    """,
    re.VERBOSE,
)


@dataclass(frozen=True)
class HeaderMatch:
    """Where the student-name header was found."""

    line_index: int
    separator: str
    column: int


def split_lines(text: str) -> list[str]:
    """Split on any newline convention and drop blank lines."""
    return [line for line in _LINE_BREAK.split(text) if line.strip()]


def is_name_header(cell: str) -> bool:
    """Whether a lower-cased, trimmed cell labels the student-name column."""
    return cell in NAME_HEADERS or NAME_HEADER_FRAGMENT in cell


def sniff_header(lines: list[str]) -> HeaderMatch | None:
    """Locate the header row and the name column, or None."""
    for line_index, line in enumerate(lines[:HEADER_SCAN_LIMIT]):
        lowered = line.lower()
        for separator in SEPARATORS:
            cells = [cell.strip() for cell in lowered.split(separator)]
            for column, cell in enumerate(cells):
                if is_name_header(cell):
                    return HeaderMatch(line_index, separator, column)
    return None


def strip_quotes(value: str) -> str:
    """Remove one leading and one trailing quote character, if present."""
    if value[:1] in _QUOTES:
        value = value[1:]
    if value[-1:] in _QUOTES:
        value = value[:-1]
    return value


def looks_numeric(value: str) -> bool:
    return _NUMERIC.fullmatch(value.strip()) is not None


def is_acceptable_name(name: str) -> bool:
    """Non-empty, longer than two characters and not a number."""
    return bool(name) and len(name) >= MIN_NAME_LENGTH and not looks_numeric(name)


def extract_student_names(text: str) -> list[str]:
    """Extract candidate student names from CSV text, in file order.

    Duplicates are kept; deduplication against a class happens on import.
    An empty list means nothing importable was found.
    """
    lines = split_lines(text)
    if not lines:
        logger.info("[CSV IMPORT] Empty file")
        return []

    header = sniff_header(lines)
    if header is None:
        separator, column, start = FALLBACK_SEPARATOR, 0, 0
        logger.debug("[CSV IMPORT] No header found, reading column 0 of every line")
    else:
        separator, column, start = header.separator, header.column, header.line_index + 1
        logger.debug(
            f"[CSV IMPORT] Header on line {header.line_index + 1}, "
            f"separator={header.separator!r}, column={header.column}"
        )

    names: list[str] = []
    for line in lines[start:]:
        cells = [cell.strip() for cell in line.split(separator)]
        if len(cells) <= column:
            continue
        name = strip_quotes(cells[column])
        if is_acceptable_name(name):
            names.append(name)

    logger.info(f"[CSV IMPORT] Found {len(names)} candidate names in {len(lines)} lines")
    return names


def decode_upload(content: bytes) -> str:
    """Decode uploaded bytes, accepting UTF-8 (with or without BOM) or Latin-1."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        logger.debug("[CSV IMPORT] Upload is not UTF-8, decoding as Latin-1")
        return content.decode("latin-1")
