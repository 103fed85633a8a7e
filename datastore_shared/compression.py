"""Compression codec provider for stored ledger payloads.

The key scheme only needs :attr:`ZstdCompressor.name` as the default file
extension; the storage adapter uses the codec to (de)compress payloads.
"""

from __future__ import annotations

import zstandard as zstd


class ZstdCompressor:
    """Thin adapter over :mod:`zstandard` exposing a canonical extension name."""

    name = "zst"

    def __init__(self, level: int = 3):
        self.level = level

    def compress(self, data: bytes) -> bytes:
        """Compress raw XDR bytes into a zstd frame."""
        return zstd.ZstdCompressor(level=self.level).compress(data)

    def decompress(self, data: bytes) -> bytes:
        """Decompress a zstd frame produced by :meth:`compress`.

        Raises:
            ValueError: If ``data`` is not a valid zstd frame.
        """
        try:
            # Frames written by compress() always carry the content size.
            return zstd.ZstdDecompressor().decompress(data)
        except zstd.ZstdError as exc:
            raise ValueError(f"invalid zstd payload: {exc}") from exc


DEFAULT_COMPRESSOR = ZstdCompressor()


__all__ = ["ZstdCompressor", "DEFAULT_COMPRESSOR"]
