"""
Uploaded file reader: decides the format, decodes and rejects whole files.
"""

import csv
import json
from pathlib import PurePath
from typing import Any

from prompt_ingest.core.errors import FileRejectedError
from prompt_ingest.observability.logger import get_logger
from prompt_ingest.observability.metrics import (
    files_rejected_total,
    increment_counter,
    rows_parsed_total,
)

from .csv_reader import CSVReader

logger = get_logger(__name__)

DEFAULT_MAX_FILE_BYTES = 10 * 1024 * 1024

JSON_CONTENT_TYPES = {"application/json"}
CSV_CONTENT_TYPES = {"text/csv", "text/plain"}
JSON_EXTENSIONS = {".json"}
CSV_EXTENSIONS = {".csv"}


class FileReader:
    """
    Reads an uploaded JSON or CSV file into raw records.

    Any problem with the file as a whole (size, type, encoding, shape) raises
    FileRejectedError before a single record is produced.
    """

    def __init__(self, max_file_bytes: int = DEFAULT_MAX_FILE_BYTES, csv_reader: CSVReader | None = None):
        """
        Initialize file reader.

        Args:
            max_file_bytes: Largest accepted upload
            csv_reader: CSV parser (defaults to comma-delimited)
        """
        self.max_file_bytes = max_file_bytes
        self.csv_reader = csv_reader or CSVReader()

    def detect_format(self, filename: str, content_type: str | None = None) -> str:
        """
        Decide whether an upload is JSON or CSV.

        Args:
            filename: Original file name
            content_type: MIME type reported by the client, if any

        Returns:
            "json" or "csv"

        Raises:
            FileRejectedError: If neither the type nor the extension is accepted
        """
        extension = PurePath(filename or "").suffix.lower()
        mime = (content_type or "").split(";")[0].strip().lower()

        # A recognised extension wins; the reported type only decides for other names
        if extension in JSON_EXTENSIONS:
            return "json"
        if extension in CSV_EXTENSIONS:
            return "csv"
        if mime in JSON_CONTENT_TYPES:
            return "json"
        if mime in CSV_CONTENT_TYPES:
            return "csv"
        raise self._reject("unsupported_type", "Please upload a JSON or CSV file", filename)

    def read(self, content: bytes, filename: str, content_type: str | None = None) -> list[dict[str, Any]]:
        """
        Read an uploaded file.

        Args:
            content: Raw file bytes
            filename: Original file name (used for format detection)
            content_type: MIME type reported by the client, if any

        Returns:
            Raw records in source order

        Raises:
            FileRejectedError: If the file is rejected as a whole
        """
        file_format = self.detect_format(filename, content_type)

        if len(content) > self.max_file_bytes:
            limit_mb = self.max_file_bytes / (1024 * 1024)
            raise self._reject("too_large", f"File size must be less than {limit_mb:g}MB", filename)

        try:
            text = content.decode("utf-8-sig")
        except UnicodeDecodeError as e:
            raise self._reject("malformed", f"File is not valid UTF-8 text: {e.reason}", filename) from e

        if file_format == "json":
            records = self._read_json(text, filename)
        else:
            try:
                records = self.csv_reader.read(text)
            except csv.Error as e:
                raise self._reject("malformed", f"CSV file is empty or invalid: {e}", filename) from e
            if not records:
                raise self._reject("empty", "CSV file is empty or invalid", filename)

        increment_counter(rows_parsed_total, len(records), file_format=file_format)
        logger.info(
            "Parsed upload",
            extra={"file_name": filename, "file_format": file_format, "record_count": len(records)},
        )
        return records

    def _read_json(self, text: str, filename: str) -> list[dict[str, Any]]:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise self._reject("malformed", f"Invalid JSON format: {e.msg}", filename) from e

        if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
            raise self._reject("malformed", "Invalid JSON format: JSON must be an array of objects", filename)

        if not data:
            raise self._reject("empty", "JSON file contains no records", filename)

        records = []
        for item in data:
            record = dict(item)
            if record.get("preview_image") and not record.get("preview_image_url"):
                record["preview_image_url"] = record["preview_image"]
            records.append(record)
        return records

    def _reject(self, reason: str, message: str, filename: str) -> FileRejectedError:
        increment_counter(files_rejected_total, reason=reason)
        logger.warning("Rejected upload", extra={"file_name": filename, "reason": reason})
        return FileRejectedError(reason, message)
