"""Reading and writing pre-extracted feature vectors on disk.

A vector stream file is nothing but encoded records laid back to back in the
layout of `linseq.codec`, with no file header. Writing a corpus once and
reloading it this way skips template extraction entirely.
"""
from __future__ import annotations
import os
from pathlib import Path
from typing import Iterable, Iterator, Union

from .codec import HEADER_BYTES, ByteCursor, decode_feature_vector, encode_feature_vector, required_bytes
from .errors import CodecError
from .types import FeatureVector

__all__ = ["save_feature_vectors", "iter_feature_vectors", "read_feature_vector"]

PathLike = Union[str, Path]


def save_feature_vectors(path: PathLike, vectors: Iterable[FeatureVector]) -> int:
    """
    Writes vectors to a stream file, one record after another.

    Args:
        path: The destination file; it is overwritten.
        vectors: The vectors to write, consumed lazily.

    Returns:
        The number of vectors written.
    """
    n = 0
    with open(path, "wb") as f:
        for fv in vectors:
            buffer = bytearray(required_bytes(len(fv.offsets)))
            encode_feature_vector(fv, buffer)
            f.write(buffer)
            n += 1
    return n


def iter_feature_vectors(path: PathLike) -> Iterator[FeatureVector]:
    """
    Lazily yields every vector stored in a stream file.

    Raises:
        FileNotFoundError: If the file does not exist.
        CodecError: If the file ends in the middle of a record.
    """
    with open(path, "rb") as f:
        while True:
            header = f.read(HEADER_BYTES)
            if not header:
                return
            if len(header) < HEADER_BYTES:
                raise CodecError(f"Truncated record header in {path}.")
            cursor = ByteCursor(header)
            cursor.get_int()
            count = cursor.get_int()
            if count < 0:
                raise CodecError(f"Malformed record in {path}: negative offset count {count}.")
            body_size = required_bytes(count) - HEADER_BYTES
            left = os.fstat(f.fileno()).st_size - f.tell()
            if body_size > left:
                raise CodecError(
                    f"Truncated record in {path}: header declares {count} offsets "
                    f"({body_size} bytes) but only {left} bytes remain."
                )
            body = f.read(body_size)
            fv, _ = decode_feature_vector(header + body)
            yield fv


def read_feature_vector(path: PathLike, buffer: bytearray) -> FeatureVector:
    """
    Reads a single-record file into a caller-owned buffer and decodes it.

    Reusing one buffer across calls avoids an allocation per vector. The
    buffer must be at least as large as the record.

    Raises:
        FileNotFoundError: If the file does not exist.
        CodecError: If the record does not fit in `buffer` or is truncated.
    """
    view = memoryview(buffer)
    with open(path, "rb") as f:
        n = f.readinto(view)
        if n == len(buffer) and f.read(1):
            raise CodecError(f"Record in {path} does not fit in a {len(buffer)}-byte buffer.")
    fv, _ = decode_feature_vector(view[:n])
    return fv
