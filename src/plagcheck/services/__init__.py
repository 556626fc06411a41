"""Business logic services for PlagCheck."""

from plagcheck.services.analysis import AnalysisService
from plagcheck.services.file_storage import FileStorageService

__all__ = [
    "AnalysisService",
    "FileStorageService",
]
