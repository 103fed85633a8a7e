"""Ledger datastore: configuration, logging and S3-compatible storage."""

__all__ = [
    "config",
    "logging_config",
    "storage_s3",
]
