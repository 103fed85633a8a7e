"""Shared datastore constants used by the key scheme, storage and CLI."""

# Ledger sequence numbers are unsigned 32-bit integers.
MAX_SEQUENCE = 0xFFFFFFFF

# Width of the ceiling-distance prefix, in hex digits.
HEX_PREFIX_WIDTH = 8

# Separator between the hex prefix and the decimal range.
PREFIX_SEPARATOR = "--"

# Every stored payload is XDR followed by the codec extension.
XDR_SUFFIX = ".xdr."

# Config keys as persisted in config.yaml
CFG_LEDGERS_PER_FILE = "ledgers_per_file"
CFG_FILES_PER_PARTITION = "files_per_partition"
CFG_FILE_EXTENSION = "file_extension"
CFG_UNGROUPED = "ungrouped"
