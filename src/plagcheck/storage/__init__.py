"""Content-addressed blob storage."""

from plagcheck.storage.ingest import StagedUpload, check_declared_size, stage
from plagcheck.storage.sharding import shard
from plagcheck.storage.store import ContentStore, PutResult

__all__ = [
    "check_declared_size",
    "ContentStore",
    "PutResult",
    "shard",
    "stage",
    "StagedUpload",
]
