"""
Data Ingestion Module
"""
from .deduplication import DeduplicationResult, deduplicate
from .spreadsheet_parser import ParseResult, parse_spreadsheet
from .upload_pipeline import IngestionMode, IngestionResult, UploadPipeline

__all__ = [
    "DeduplicationResult",
    "deduplicate",
    "ParseResult",
    "parse_spreadsheet",
    "IngestionMode",
    "IngestionResult",
    "UploadPipeline",
]
