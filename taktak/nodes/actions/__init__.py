"""Data and network action nodes."""

from .csv_node import CSVExportHandler, CSVImportHandler
from .http import HTTPRequestHandler
from .transform import TransformHandler

__all__ = [
    "CSVExportHandler",
    "CSVImportHandler",
    "HTTPRequestHandler",
    "TransformHandler",
]
