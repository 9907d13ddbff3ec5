"""
prompt-ingest: bulk ingestion of prompt records with live moderation sync.
"""

__version__ = "0.1.0"
