"""
Retrieval pipeline: list, fetch and assemble Logpush objects.

Usage:
    from r2logs.pipeline import RetrievalPipeline

    pipeline = RetrievalPipeline(store, scheme, settings.retrieval)
    for record in pipeline.retrieve(time_range):
        ...
"""

from .assembler import LogAssembler, pretty_format
from .fetcher import LogRecord, ObjectFetcher, ResumableBody
from .lister import ObjectLister, StoredObject
from .runner import RetrievalPipeline, setup_logging

__all__ = [
    # Stages
    "ObjectLister",
    "ObjectFetcher",
    "LogAssembler",
    "RetrievalPipeline",
    # Data
    "StoredObject",
    "LogRecord",
    "ResumableBody",
    # Helpers
    "pretty_format",
    "setup_logging",
]
