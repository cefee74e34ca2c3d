"""
Services for Raintree Sync.
"""

from .store import MappingStore, JsonFileMappingStore, create_mapping_store

__all__ = [
    "MappingStore",
    "JsonFileMappingStore",
    "create_mapping_store",
]
