"""Fixed-layout binary encoding of feature vectors.

Every vector is stored as a small header followed by its offsets::

    [label: int32][count: int32] { [index: int32][value: float64] } * count

All fields are little-endian and there is no padding, so a record always takes
`required_bytes(count)` bytes. The format is deliberately uncompressed: records
can be addressed directly inside a memory-mapped corpus file.

Reads and writes go through a `ByteCursor`, a bounds-checked position over a
byte buffer. A cursor belongs to a single encode or decode call; callers that
walk a stream of records pass the running offset explicitly.
"""
from __future__ import annotations
import struct
from typing import Tuple, Union

import numpy as np

from .errors import CodecError
from .types import FeatureVector, Offset

__all__ = [
    "SIZE_OF_INT",
    "SIZE_OF_DOUBLE",
    "HEADER_BYTES",
    "OFFSET_BYTES",
    "ByteCursor",
    "required_bytes",
    "encode_feature_vector",
    "decode_feature_vector",
]

SIZE_OF_INT = 4
SIZE_OF_DOUBLE = 8
HEADER_BYTES = 2 * SIZE_OF_INT
OFFSET_BYTES = SIZE_OF_INT + SIZE_OF_DOUBLE

_INT32 = struct.Struct("<i")
_DOUBLE = struct.Struct("<d")
_INT32_MIN, _INT32_MAX = -(2 ** 31), 2 ** 31 - 1
_OFFSET_DTYPE = np.dtype([("index", "<i4"), ("value", "<f8")])

Buffer = Union[bytes, bytearray, memoryview]


def required_bytes(count: int) -> int:
    """Returns the number of bytes a vector with `count` offsets occupies."""
    return HEADER_BYTES + count * OFFSET_BYTES


class ByteCursor:
    """
    A read/write position over a byte buffer that refuses to run off the end.

    Unlike raw memory access, every `get_*`/`put_*` call checks the remaining
    space first and raises `CodecError` instead of touching bytes outside the
    buffer. Writing requires a mutable buffer such as a `bytearray`.
    """

    def __init__(self, buffer: Buffer, position: int = 0):
        self._view = memoryview(buffer).cast("B")
        if position < 0 or position > len(self._view):
            raise CodecError(f"Cursor position {position} is outside a buffer of {len(self._view)} bytes.")
        self.position = position

    @property
    def remaining(self) -> int:
        return len(self._view) - self.position

    def require(self, n: int) -> None:
        if n > self.remaining:
            raise CodecError(
                f"Buffer overrun: need {n} bytes at position {self.position}, "
                f"only {self.remaining} remain."
            )

    def _advance(self, n: int) -> int:
        self.require(n)
        start = self.position
        self.position += n
        return start

    def get_int(self) -> int:
        start = self._advance(SIZE_OF_INT)
        return _INT32.unpack_from(self._view, start)[0]

    def get_double(self) -> float:
        start = self._advance(SIZE_OF_DOUBLE)
        return _DOUBLE.unpack_from(self._view, start)[0]

    def put_int(self, value: int) -> None:
        start = self._advance(SIZE_OF_INT)
        try:
            _INT32.pack_into(self._view, start, value)
        except struct.error as e:
            raise CodecError(f"Value {value} does not fit in an int32: {e}")

    def put_double(self, value: float) -> None:
        start = self._advance(SIZE_OF_DOUBLE)
        _DOUBLE.pack_into(self._view, start, value)

    def get_bytes(self, n: int) -> memoryview:
        start = self._advance(n)
        return self._view[start:start + n]

    def put_bytes(self, data: Buffer) -> None:
        data = memoryview(data).cast("B")
        start = self._advance(len(data))
        self._view[start:start + len(data)] = data


def encode_feature_vector(fv: FeatureVector, buffer: Buffer, offset: int = 0) -> int:
    """
    Writes one feature vector into `buffer` starting at byte `offset`.

    The full record size is checked before anything is written, so a buffer
    that is too small is left untouched.

    Args:
        fv: The vector to encode.
        buffer: A mutable byte buffer (e.g. a `bytearray`).
        offset: The byte position at which the record starts.

    Returns:
        The number of bytes written, always `required_bytes(len(fv.offsets))`.

    Raises:
        CodecError: If the buffer is too small or a label/index does not fit
                    in an int32.
    """
    count = len(fv.offsets)
    total = required_bytes(count)
    cursor = ByteCursor(buffer, offset)
    cursor.require(total)

    indices = [o.index for o in fv.offsets]
    if not _INT32_MIN <= fv.y <= _INT32_MAX:
        raise CodecError(f"Label {fv.y} does not fit in an int32.")
    if indices and max(indices) > _INT32_MAX:
        raise CodecError(f"Feature index {max(indices)} does not fit in an int32.")

    body = np.empty(count, dtype=_OFFSET_DTYPE)
    body["index"] = indices
    body["value"] = [o.value for o in fv.offsets]

    cursor.put_int(fv.y)
    cursor.put_int(count)
    cursor.put_bytes(body.tobytes())
    return total


def decode_feature_vector(buffer: Buffer, offset: int = 0) -> Tuple[FeatureVector, int]:
    """
    Reads one feature vector from `buffer` starting at byte `offset`.

    Args:
        buffer: The byte buffer holding the record.
        offset: The byte position at which the record starts.

    Returns:
        A tuple of the decoded `FeatureVector` and the number of bytes consumed.

    Raises:
        CodecError: If the header declares a negative count or the buffer ends
                    before the declared number of offsets.
    """
    cursor = ByteCursor(buffer, offset)
    y = cursor.get_int()
    count = cursor.get_int()
    if count < 0:
        raise CodecError(f"Malformed record at byte {offset}: negative offset count {count}.")

    raw = cursor.get_bytes(count * OFFSET_BYTES)
    fv = FeatureVector(y)
    if count:
        body = np.frombuffer(raw, dtype=_OFFSET_DTYPE, count=count)
        if int(body["index"].min()) < 0:
            raise CodecError(f"Malformed record at byte {offset}: negative feature index.")
        fv.extend(Offset(int(i), float(v)) for i, v in zip(body["index"], body["value"]))
    return fv, required_bytes(count)
