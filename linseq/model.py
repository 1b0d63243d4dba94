"""Linear scoring model over sparse feature vectors.

The model holds a dense weight array plus two scalars applied at scoring time:
a divisor `wdiv` (so that weight decay can be folded into a single number) and
an additive bias `wbias`. It implements no learning rule of its own. A trainer
drives it through `add` (the SGD update primitive), `scale_inplace` (weight
decay) and `magnitude_squared_scaled` (regularization bookkeeping).

`add` and `scale_inplace` mutate the weight array in place and take no locks;
concurrent trainers must serialize updates to a given model themselves.

Persisted models are a header-less little-endian stream::

    [wdiv: float64][wbias: float64][length: int64] { [weight: float64] } * length
"""
from __future__ import annotations
import io
import struct
from pathlib import Path
from typing import BinaryIO, List, Optional, Protocol, Union

import numpy as np

from .errors import FeatureIndexError, ModelFormatError
from .types import FeatureVector

__all__ = ["Model", "LinearModel"]

_HEADER = struct.Struct("<ddq")
_WEIGHT_DTYPE = np.dtype("<f8")

PathOrStream = Union[str, Path, BinaryIO]


class Model(Protocol):
    """The capabilities every scoring model exposes to callers."""

    def load(self, source: PathOrStream) -> None: ...

    def save(self, sink: PathOrStream) -> None: ...

    def predict(self, fv: FeatureVector) -> float: ...

    def score(self, fv: FeatureVector) -> List[float]: ...


_CHUNK_BYTES = 1 << 20


def _bytes_left(stream: BinaryIO) -> Optional[int]:
    """Bytes between the current position and the end, or None if the stream cannot seek."""
    try:
        if not stream.seekable():
            return None
        here = stream.tell()
        end = stream.seek(0, io.SEEK_END)
        stream.seek(here)
    except (AttributeError, OSError):
        return None
    return end - here


def _read_exact(stream: BinaryIO, n: int, what: str) -> bytes:
    left = _bytes_left(stream)
    if left is not None and n > left:
        raise ModelFormatError(f"Truncated model stream while reading {what}: expected {n} bytes, only {left} remain.")

    # Unseekable streams are read in bounded chunks so a bogus length cannot force one huge allocation.
    data = bytearray()
    while len(data) < n:
        chunk = stream.read(min(_CHUNK_BYTES, n - len(data)))
        if not chunk:
            raise ModelFormatError(f"Truncated model stream while reading {what}: expected {n} bytes, got {len(data)}.")
        data.extend(chunk)
    return bytes(data)


class LinearModel:
    """
    A dense linear model scored as `dot(weights, fv) / wdiv + wbias`.

    Attributes:
        wdiv: The scaling divisor applied to the raw dot product.
        wbias: The additive bias applied after scaling.
    """

    def __init__(self, wlength: int = 0, wdiv: float = 1.0, wbias: float = 0.0):
        if wlength < 0:
            raise ValueError(f"Weight vector length must be non-negative, got {wlength}.")
        self._weights = np.zeros(wlength, dtype=np.float64)
        self.wdiv = float(wdiv)
        self.wbias = float(wbias)

    @classmethod
    def from_weights(cls, weights, wdiv: float = 1.0, wbias: float = 0.0) -> "LinearModel":
        """Creates a model owning a copy of `weights`."""
        model = cls(0, wdiv, wbias)
        model._weights = np.array(weights, dtype=np.float64, copy=True).reshape(-1)
        return model

    @classmethod
    def for_encoder(cls, encoder, wdiv: float = 1.0, wbias: float = 0.0) -> "LinearModel":
        """Creates a zero model with one weight per feature id of `encoder`."""
        return cls(len(encoder), wdiv, wbias)

    @classmethod
    def from_file(cls, source: PathOrStream) -> "LinearModel":
        model = cls()
        model.load(source)
        return model

    @property
    def weights(self) -> np.ndarray:
        """A read-only view of the weight array."""
        view = self._weights.view()
        view.flags.writeable = False
        return view

    def __len__(self) -> int:
        return len(self._weights)

    # --- Persistence ---
    def load(self, source: PathOrStream) -> None:
        """
        Replaces this model's state with one read from a path or binary stream.

        Raises:
            FileNotFoundError: If `source` is a path that does not exist.
            ModelFormatError: If the stream ends before the declared number of
                              weights, or declares a negative length.
        """
        if isinstance(source, (str, Path)):
            with open(source, "rb") as f:
                self.load(f)
            return

        wdiv, wbias, length = _HEADER.unpack(_read_exact(source, _HEADER.size, "the model header"))
        if length < 0:
            raise ModelFormatError(f"Malformed model stream: negative weight count {length}.")
        raw = _read_exact(source, length * _WEIGHT_DTYPE.itemsize, f"{length} weights")

        self.wdiv = wdiv
        self.wbias = wbias
        self._weights = np.frombuffer(raw, dtype=_WEIGHT_DTYPE).astype(np.float64) if length else np.zeros(0)

    def save(self, sink: PathOrStream) -> None:
        """Writes this model to a path or binary stream."""
        if isinstance(sink, (str, Path)):
            with open(sink, "wb") as f:
                self.save(f)
            return

        sink.write(_HEADER.pack(self.wdiv, self.wbias, len(self._weights)))
        sink.write(self._weights.astype(_WEIGHT_DTYPE).tobytes())

    # --- Scoring ---
    def _gather(self, fv: FeatureVector) -> tuple[np.ndarray, np.ndarray]:
        n = len(fv.offsets)
        idx = np.fromiter((o.index for o in fv.offsets), dtype=np.int64, count=n)
        values = np.fromiter((o.value for o in fv.offsets), dtype=np.float64, count=n)
        if n:
            lo, hi = int(idx.min()), int(idx.max())
            if lo < 0 or hi >= len(self._weights):
                bad = lo if lo < 0 else hi
                raise FeatureIndexError(
                    f"Feature index {bad} is out of range for a model with {len(self._weights)} weights."
                )
        return idx, values

    def dot(self, fv: FeatureVector) -> float:
        """The raw (unscaled, unbiased) weighted sum over the vector's offsets."""
        idx, values = self._gather(fv)
        return float(np.dot(self._weights[idx], values)) if len(idx) else 0.0

    def predict(self, fv: FeatureVector) -> float:
        return self.dot(fv) / self.wdiv + self.wbias

    def score(self, fv: FeatureVector) -> List[float]:
        return [self.predict(fv)]

    # --- Update primitives ---
    def add(self, fv: FeatureVector, disp: float) -> None:
        """Adds `offset.value * disp` to the weight of every offset in `fv`."""
        idx, values = self._gather(fv)
        # np.add.at accumulates repeated indices instead of keeping only the last one.
        np.add.at(self._weights, idx, values * disp)

    def scale_inplace(self, scalar: float) -> None:
        self._weights *= scalar

    def magnitude_squared_scaled(self) -> float:
        """Squared norm of the weights under the current divisor: `|w|^2 / wdiv^2`."""
        return float(np.dot(self._weights, self._weights)) / self.wdiv / self.wdiv

    mag = magnitude_squared_scaled

    def prototype(self) -> "LinearModel":
        """Returns a deep copy that shares no state with this model."""
        return LinearModel.from_weights(self._weights, self.wdiv, self.wbias)

    def __repr__(self) -> str:
        return f"LinearModel(wlength={len(self._weights)}, wdiv={self.wdiv}, wbias={self.wbias})"
