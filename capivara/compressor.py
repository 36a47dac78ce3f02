"""Zstandard compression of whole byte strings."""

from __future__ import annotations

import io

import zstandard


def compress_zstd(data: bytes) -> bytes:
    """Compress ``data`` into a single zstd frame."""
    return zstandard.ZstdCompressor().compress(data)


def decompress_zstd(compressed: bytes) -> bytes:
    """Decompress every zstd frame in ``compressed``."""
    decompressor = zstandard.ZstdDecompressor()
    chunks = []
    try:
        with decompressor.stream_reader(
            io.BytesIO(compressed), read_across_frames=True
        ) as reader:
            for chunk in iter(lambda: reader.read(1 << 16), b""):
                chunks.append(chunk)
    except zstandard.ZstdError as error:
        raise ValueError(f"failed to decompress zstd data: {error}") from error
    return b"".join(chunks)