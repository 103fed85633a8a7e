"""Object key scheme for ledger files stored in a flat object store.

Ledgers are grouped into files of ``ledgers_per_file`` sequence numbers and,
optionally, files are grouped into partition directories of
``files_per_partition`` files. Every range is rendered as::

    <8 hex digits>--<start>[-<end>]

where the hex prefix is ``MAX_SEQUENCE - start``. Ascending sequence numbers
therefore produce descending keys, so a lexicographic bucket listing returns
the most recent ledgers first. Possible key shapes::

    FFFFFFFA--5.xdr.zst
    FFFFFFFF--0-9.xdr.zst
    FFFFFFFF--0-199/FFFFFFFF--0-99.xdr.zst
    FFFFFF9B--100-199/FFFFFF69--150-199.xdr.zst

All helpers are pure and safe to call from any thread.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Mapping, NamedTuple, Optional

from .compression import DEFAULT_COMPRESSOR
from .constants import (
    CFG_FILE_EXTENSION,
    CFG_FILES_PER_PARTITION,
    CFG_LEDGERS_PER_FILE,
    CFG_UNGROUPED,
    HEX_PREFIX_WIDTH,
    MAX_SEQUENCE,
    PREFIX_SEPARATOR,
    XDR_SUFFIX,
)

_EXTENSION_RE = re.compile(r"[A-Za-z0-9][A-Za-z0-9._-]*")

# At most ten digits, the width of MAX_SEQUENCE
_DECIMAL = r"0|[1-9][0-9]{0,9}"
_KEY_RE = re.compile(
    rf"(?:(?P<phex>[0-9A-F]{{{HEX_PREFIX_WIDTH}}})--(?P<pstart>{_DECIMAL})-(?P<pend>{_DECIMAL})/)?"
    rf"(?P<fhex>[0-9A-F]{{{HEX_PREFIX_WIDTH}}})--(?P<fstart>{_DECIMAL})(?:-(?P<fend>{_DECIMAL}))?"
    rf"\.xdr\.(?P<ext>{_EXTENSION_RE.pattern})"
)

_TRUE_STRINGS = {"1", "true", "yes", "on"}
_FALSE_STRINGS = {"0", "false", "no", "off", ""}


class SchemaError(ValueError):
    """Invalid schema configuration or a sequence number outside uint32."""


class ObjectKeyError(ValueError):
    """Object key does not follow the ledger key scheme."""


class LedgerRange(NamedTuple):
    """Inclusive range of ledger sequence numbers."""

    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start + 1

    def contains(self, ledger_seq: int) -> bool:
        return self.start <= ledger_seq <= self.end


class ObjectKey(NamedTuple):
    """Boundaries decoded from an object key."""

    partition: Optional[LedgerRange]
    file: LedgerRange
    extension: str


def _check_uint32(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise SchemaError(f"{name} must be an integer, got {value!r}")
    if not 0 <= value <= MAX_SEQUENCE:
        raise SchemaError(f"{name} must be within [0, {MAX_SEQUENCE}], got {value}")
    return value


def _range_start(ledger_seq: int, width: int) -> int:
    return (ledger_seq // width) * width


def _range_end(start: int, width: int) -> int:
    # Python ints do not wrap; clamp to the top of the uint32 domain.
    return min(start + width - 1, MAX_SEQUENCE)


def _ceiling_distance(start: int) -> str:
    return f"{MAX_SEQUENCE - start:0{HEX_PREFIX_WIDTH}X}"


@dataclass(frozen=True)
class DataStoreSchema:
    """Partitioning parameters of a ledger archive.

    Args:
        ledgers_per_file: Ledgers stored together in one file. ``0`` is only
            accepted together with ``ungrouped=True`` and puts the whole
            sequence domain into a single file.
        files_per_partition: Files grouped under one partition directory.
            ``0`` and ``1`` both disable partition directories.
        file_extension: Extension override; the default compressor's name is
            used when empty.
        ungrouped: Explicit opt-in for ``ledgers_per_file == 0``.

    Raises:
        SchemaError: If the parameters cannot tile the uint32 domain.
    """

    ledgers_per_file: int
    files_per_partition: int = 0
    file_extension: str = ""
    ungrouped: bool = False
    file_size: Optional[int] = field(init=False, repr=False, compare=False)
    partition_size: Optional[int] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        _check_uint32(CFG_LEDGERS_PER_FILE, self.ledgers_per_file)
        _check_uint32(CFG_FILES_PER_PARTITION, self.files_per_partition)
        if not isinstance(self.ungrouped, bool):
            raise SchemaError(f"ungrouped must be a boolean, got {self.ungrouped!r}")

        if self.ungrouped:
            if self.ledgers_per_file != 0:
                raise SchemaError("ungrouped schemas require ledgers_per_file to be 0")
            if self.files_per_partition > 1:
                raise SchemaError("ungrouped schemas cannot use partition directories")
        elif self.ledgers_per_file == 0:
            raise SchemaError(
                "ledgers_per_file must be positive; set ungrouped to store all ledgers in one file"
            )

        if not isinstance(self.file_extension, str):
            raise SchemaError(f"file_extension must be a string, got {self.file_extension!r}")
        if self.file_extension and not _EXTENSION_RE.fullmatch(self.file_extension):
            raise SchemaError(f"invalid file_extension: {self.file_extension!r}")

        file_size = None if self.ungrouped else self.ledgers_per_file
        # May exceed 2**32; the partition end is clamped on its own.
        partition_size = (
            self.ledgers_per_file * self.files_per_partition if self.files_per_partition > 1 else None
        )
        object.__setattr__(self, "file_size", file_size)
        object.__setattr__(self, "partition_size", partition_size)

    @classmethod
    def from_mapping(cls, cfg: Mapping[str, Any] | None) -> "DataStoreSchema":
        """Build a schema from a config mapping (e.g. ``datastore.schema`` in config.yaml).

        Args:
            cfg: Mapping with ``ledgers_per_file`` and optional
                ``files_per_partition``, ``file_extension`` and ``ungrouped``.
                Decimal strings are accepted for numeric values.

        Returns:
            DataStoreSchema: Validated schema.

        Raises:
            SchemaError: If the mapping is missing ``ledgers_per_file`` or holds
                invalid values.
        """
        if not isinstance(cfg, Mapping):
            raise SchemaError("schema config must be a mapping")
        if cfg.get(CFG_LEDGERS_PER_FILE) is None:
            raise SchemaError(f"schema config is missing {CFG_LEDGERS_PER_FILE}")

        return cls(
            ledgers_per_file=_coerce_int(cfg[CFG_LEDGERS_PER_FILE]),
            files_per_partition=_coerce_int(cfg.get(CFG_FILES_PER_PARTITION) or 0),
            file_extension=cfg.get(CFG_FILE_EXTENSION) or "",
            ungrouped=_coerce_bool(cfg.get(CFG_UNGROUPED, False)),
        )

    @property
    def partitioned(self) -> bool:
        return self.partition_size is not None

    @property
    def extension(self) -> str:
        """Extension appended after ``.xdr.``."""
        return self.file_extension or DEFAULT_COMPRESSOR.name

    def get_sequence_number_start_boundary(self, ledger_seq: int) -> int:
        """Return the first ledger of the file holding ``ledger_seq``."""
        seq = _check_uint32("ledger_seq", ledger_seq)
        if self.file_size is None:
            return 0
        return _range_start(seq, self.file_size)

    def get_sequence_number_end_boundary(self, ledger_seq: int) -> int:
        """Return the last ledger of the file holding ``ledger_seq``, capped at ``MAX_SEQUENCE``."""
        start = self.get_sequence_number_start_boundary(ledger_seq)
        if self.file_size is None:
            return MAX_SEQUENCE
        return _range_end(start, self.file_size)

    def get_partition_start_boundary(self, ledger_seq: int) -> Optional[int]:
        """Return the first ledger of the partition holding ``ledger_seq``, or None."""
        seq = _check_uint32("ledger_seq", ledger_seq)
        if self.partition_size is None:
            return None
        return _range_start(seq, self.partition_size)

    def get_partition_end_boundary(self, ledger_seq: int) -> Optional[int]:
        """Return the last ledger of the partition holding ``ledger_seq``, or None."""
        start = self.get_partition_start_boundary(ledger_seq)
        if start is None:
            return None
        return _range_end(start, self.partition_size)

    def file_range(self, ledger_seq: int) -> LedgerRange:
        return LedgerRange(
            self.get_sequence_number_start_boundary(ledger_seq),
            self.get_sequence_number_end_boundary(ledger_seq),
        )

    def partition_range(self, ledger_seq: int) -> Optional[LedgerRange]:
        start = self.get_partition_start_boundary(ledger_seq)
        if start is None:
            return None
        return LedgerRange(start, self.get_partition_end_boundary(ledger_seq))

    def get_partition_prefix(self, ledger_seq: int) -> str:
        """Return the partition directory (with trailing slash) for ``ledger_seq``.

        Returns:
            str: ``H--start-end/`` or an empty string when partitioning is off.
        """
        partition = self.partition_range(ledger_seq)
        if partition is None:
            return ""
        return f"{_ceiling_distance(partition.start)}{PREFIX_SEPARATOR}{partition.start}-{partition.end}/"

    def get_object_key_from_sequence_number(self, ledger_seq: int) -> str:
        """Build the object key of the file holding ``ledger_seq``.

        Args:
            ledger_seq: Ledger sequence number within ``[0, MAX_SEQUENCE]``.

        Returns:
            str: Key such as ``FFFFFF9B--100-199/FFFFFF69--150-199.xdr.zst``.
        """
        file_start, file_end = self.file_range(ledger_seq)
        key = self.get_partition_prefix(ledger_seq)
        key += f"{_ceiling_distance(file_start)}{PREFIX_SEPARATOR}{file_start}"

        # Multiple ledgers per file
        if file_start != file_end:
            key += f"-{file_end}"

        return f"{key}{XDR_SUFFIX}{self.extension}"

    def matches(self, object_key: ObjectKey) -> bool:
        """Return True if a parsed key was produced by this schema."""
        seq = object_key.file.start
        return (
            object_key.file == self.file_range(seq)
            and object_key.partition == self.partition_range(seq)
            and object_key.extension == self.extension
        )


def parse_object_key(key: str) -> ObjectKey:
    """Decode the partition and file boundaries embedded in an object key.

    Args:
        key: Key produced by :meth:`DataStoreSchema.get_object_key_from_sequence_number`.

    Returns:
        ObjectKey: Partition range (or None), file range and extension.

    Raises:
        ObjectKeyError: If the key is malformed, a hex prefix disagrees with its
            decimal start, or a range is inverted.
    """
    match = _KEY_RE.fullmatch(key) if isinstance(key, str) else None
    if match is None:
        raise ObjectKeyError(f"not a ledger object key: {key!r}")

    partition = None
    if match.group("phex") is not None:
        partition = _decode_range(key, match.group("phex"), match.group("pstart"), match.group("pend"))
    file = _decode_range(key, match.group("fhex"), match.group("fstart"), match.group("fend"))

    if partition is not None and not (partition.start <= file.start and file.end <= partition.end):
        raise ObjectKeyError(f"file range outside its partition: {key!r}")

    return ObjectKey(partition, file, match.group("ext"))


def _decode_range(key: str, hex_prefix: str, start: str, end: str | None) -> LedgerRange:
    first = int(start)
    last = int(end) if end is not None else first
    if last > MAX_SEQUENCE:
        raise ObjectKeyError(f"sequence number out of range in {key!r}")
    if first > last:
        raise ObjectKeyError(f"inverted range {first}-{last} in {key!r}")
    if int(hex_prefix, 16) != MAX_SEQUENCE - first:
        raise ObjectKeyError(f"prefix {hex_prefix} does not match start {first} in {key!r}")
    return LedgerRange(first, last)


def _coerce_int(value: Any) -> Any:
    """Turn decimal strings from YAML/env into ints; other values are validated later."""
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value.strip())
    return value


def _coerce_bool(value: Any) -> Any:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return value


__all__ = [
    "DataStoreSchema",
    "LedgerRange",
    "ObjectKey",
    "ObjectKeyError",
    "SchemaError",
    "parse_object_key",
]
