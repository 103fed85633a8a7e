"""Shared exports for the ledger datastore server and CLI."""

from .compression import DEFAULT_COMPRESSOR, ZstdCompressor  # noqa: F401
from .constants import MAX_SEQUENCE  # noqa: F401
from .schema import (  # noqa: F401
    DataStoreSchema,
    LedgerRange,
    ObjectKey,
    ObjectKeyError,
    SchemaError,
    parse_object_key,
)

__all__ = [
    "DEFAULT_COMPRESSOR",
    "MAX_SEQUENCE",
    "DataStoreSchema",
    "LedgerRange",
    "ObjectKey",
    "ObjectKeyError",
    "SchemaError",
    "ZstdCompressor",
    "parse_object_key",
]
