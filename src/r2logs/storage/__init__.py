"""
Object storage access for Logpush buckets.

Usage:
    from r2logs.storage import create_object_store

    with create_object_store(settings) as store:
        for summary in store.list_objects("date=2024-01-11/hour=15/"):
            print(summary.key)
"""

from .base import ObjectStore, ObjectSummary
from .factory import create_object_store, register_backend

__all__ = [
    "ObjectStore",
    "ObjectSummary",
    "create_object_store",
    "register_backend",
]
