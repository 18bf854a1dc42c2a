"""CSV parsing for imports using pandas.

Every cell is read as a string: no NA coercion, no type inference. The
pipeline downstream works on trimmed strings only.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass, field
from io import BytesIO
from typing import Iterator, Optional, Union

import pandas as pd

CANDIDATE_DELIMITERS = (",", ";", "\t", "|")
CHUNK_SIZE = 1000

Content = Union[bytes, str]


def _as_bytes(content: Content) -> bytes:
    if isinstance(content, str):
        return content.encode("utf-8")
    return content


def _sample_text(content: Content, size: int = 8192) -> str:
    raw = _as_bytes(content)[:size]
    return raw.decode("utf-8-sig", errors="replace")


def detect_delimiter(sample: Content) -> str:
    """
    Guess the delimiter of a CSV sample.

    Tries the csv sniffer first, restricted to the supported delimiters, then
    falls back to the delimiter that occurs most often in the header line.
    Defaults to a comma.
    """
    text = _sample_text(sample)
    if not text.strip():
        return ","
    try:
        dialect = csv.Sniffer().sniff(text, delimiters="".join(CANDIDATE_DELIMITERS))
        return dialect.delimiter
    except csv.Error:
        pass

    header = text.splitlines()[0]
    counts = {delimiter: header.count(delimiter) for delimiter in CANDIDATE_DELIMITERS}
    best = max(counts, key=counts.get)
    return best if counts[best] else ","


class CSVParser:
    """CSV parser using pandas chunksize for memory efficiency."""

    def __init__(self, delimiter: Optional[str] = None):
        self.delimiter = delimiter

    def _delimiter_for(self, file_content: Content) -> str:
        return self.delimiter or detect_delimiter(file_content)

    def _read(self, file_content: Content, **kwargs):
        return pd.read_csv(
            BytesIO(_as_bytes(file_content)),
            sep=self._delimiter_for(file_content),
            dtype=str,  # Keep everything as string for import
            na_values=[],
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8-sig",
            encoding_errors="replace",
            **kwargs,
        )

    def parse_headers(self, file_content: Content) -> list[str]:
        """Parse CSV headers."""
        if not _as_bytes(file_content).strip():
            return []
        df = self._read(file_content, nrows=0)
        return [str(col).strip() for col in df.columns.tolist()]

    def parse_rows(
        self, file_content: Content, limit: Optional[int] = None
    ) -> Iterator[dict[str, str]]:
        """Yield rows as ``{header: value}`` dicts with trimmed string values."""
        if not _as_bytes(file_content).strip():
            return
        total_count = 0
        for chunk in self._read(file_content, chunksize=CHUNK_SIZE):
            chunk = chunk.fillna("")
            for _, row in chunk.iterrows():
                if limit is not None and total_count >= limit:
                    return
                yield {
                    str(k).strip(): (str(v).strip() if pd.notna(v) else "")
                    for k, v in row.items()
                }
                total_count += 1

    def get_row_count(self, file_content: Content) -> int:
        """Count data rows (excluding the header)."""
        if not _as_bytes(file_content).strip():
            return 0
        count = 0
        for chunk in self._read(file_content, chunksize=CHUNK_SIZE):
            count += len(chunk)
        return count


@dataclass
class ParsedCSV:
    headers: list[str]
    rows: list[dict[str, str]] = field(default_factory=list)
    delimiter: str = ","

    @property
    def row_count(self) -> int:
        return len(self.rows)


def parse_csv(content: Content, limit: Optional[int] = None) -> ParsedCSV:
    """
    Parse CSV content into headers and rows.

    Raises:
        ValueError: content cannot be parsed as CSV
    """
    delimiter = detect_delimiter(content)
    parser = CSVParser(delimiter=delimiter)
    try:
        headers = parser.parse_headers(content)
        rows = list(parser.parse_rows(content, limit=limit))
    except (pd.errors.ParserError, pd.errors.EmptyDataError, UnicodeDecodeError) as e:
        raise ValueError(f"Could not parse CSV: {e}") from e
    return ParsedCSV(headers=headers, rows=rows, delimiter=delimiter)
