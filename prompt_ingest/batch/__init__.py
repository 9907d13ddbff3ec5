"""
Upload batch processing: parsing, orchestration, autosave and publishing.
"""

from .autosave import DebouncedAutosave
from .orchestrator import BatchOrchestrator
from .publisher import Publisher
from .readers import CSVReader, FileReader, parse_csv

__all__ = [
    "BatchOrchestrator",
    "CSVReader",
    "DebouncedAutosave",
    "FileReader",
    "Publisher",
    "parse_csv",
]
