"""
Upload readers.
"""

from .csv_reader import CSVReader, parse_csv
from .file_reader import DEFAULT_MAX_FILE_BYTES, FileReader

__all__ = [
    "CSVReader",
    "DEFAULT_MAX_FILE_BYTES",
    "FileReader",
    "parse_csv",
]
