"""
CSV reader for bulk prompt uploads.
"""

import csv
import io
from typing import Any

# Column names that all mean "preview image URL"
IMAGE_HEADER_ALIASES = {"preview_image", "image_url", "image"}
TAG_SEPARATOR = ";"


class CSVReader:
    """
    Parses CSV text into raw records.

    The first non-blank line is the header; every later non-blank line is a
    record. Fields may be double-quoted, with ``""`` escaping a quote, and a
    quoted field may span lines. Cells are trimmed, missing trailing cells
    become empty strings and surplus cells are ignored.
    """

    def __init__(self, delimiter: str = ",", tag_separator: str = TAG_SEPARATOR):
        """
        Initialize CSV reader.

        Args:
            delimiter: Field delimiter
            tag_separator: Separator used inside the ``tags`` column
        """
        self.delimiter = delimiter
        self.tag_separator = tag_separator

    def _header_name(self, name: str) -> str:
        name = name.strip()
        if name.lower() in IMAGE_HEADER_ALIASES:
            return "preview_image_url"
        return name

    def _split_tags(self, value: str) -> list[str]:
        return [tag.strip() for tag in value.split(self.tag_separator) if tag.strip()]

    def read(self, text: str) -> list[dict[str, Any]]:
        """
        Parse CSV text.

        Args:
            text: Decoded file content

        Returns:
            Raw records in file order; empty if there is no data row
        """
        reader = csv.reader(io.StringIO(text, newline=""), delimiter=self.delimiter)
        header: list[str] | None = None
        records: list[dict[str, Any]] = []

        for cells in reader:
            if not any(cell.strip() for cell in cells):
                continue

            if header is None:
                header = [self._header_name(cell) for cell in cells]
                continue

            record: dict[str, Any] = {}
            for position, name in enumerate(header):
                if not name:
                    continue
                value = cells[position].strip() if position < len(cells) else ""
                record[name] = self._split_tags(value) if name == "tags" else value
            records.append(record)

        return records


def parse_csv(text: str) -> list[dict[str, Any]]:
    """Parse CSV text with the default dialect."""
    return CSVReader().read(text)
