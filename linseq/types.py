from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

__all__ = ["Offset", "FeatureVector", "FeatureVectorSequence", "State"]


@dataclass(frozen=True)
class Offset:
    """
    A single sparse entry of a feature vector.

    Attributes:
        index: The non-negative position of the feature in the weight vector.
        value: The feature value (1.0 for presence features).
    """
    index: int
    value: float = 1.0

    def __post_init__(self) -> None:
        if self.index < 0:
            raise ValueError(f"Offset index must be non-negative, got {self.index}.")


@dataclass
class FeatureVector:
    """
    A label together with an ordered list of sparse offsets.

    The order of `offsets` is preserved exactly as inserted. It does not affect
    dot products, but it is part of the binary layout, so a decoded vector
    compares equal to the original only if the order matches. The type does not
    guard against duplicate indices; duplicates count twice in a dot product.

    Attributes:
        y: The class id, or the target for regression.
        offsets: The non-zero entries of the vector.
    """
    y: int
    offsets: List[Offset] = field(default_factory=list)

    def add(self, offset: Offset) -> None:
        self.offsets.append(offset)

    def extend(self, offsets: Iterable[Offset]) -> None:
        self.offsets.extend(offsets)

    def dot(self, other: "FeatureVector") -> float:
        """Sparse dot product against another vector (duplicate indices are summed first)."""
        mine: dict[int, float] = {}
        for o in self.offsets:
            mine[o.index] = mine.get(o.index, 0.0) + o.value
        total = 0.0
        for o in other.offsets:
            total += mine.get(o.index, 0.0) * o.value
        return total

    def __len__(self) -> int:
        return len(self.offsets)


@dataclass(frozen=True)
class State:
    """
    One token position of a labeled input sequence.

    Attributes:
        label: The gold label of the position (e.g. a chunk tag).
        fields: The raw token columns (word, POS tag, ...), addressed by
                column index from feature templates.
    """
    label: str
    fields: Tuple[str, ...] = ()

    @property
    def word(self) -> str:
        return self.fields[0] if self.fields else ""


@dataclass
class FeatureVectorSequence:
    """
    The feature vectors produced for every position of one input sequence.

    Attributes:
        vectors: One `FeatureVector` per position, in sequence order.
        states: The raw states the vectors were extracted from, kept only when
                the producing pipeline was asked to save raw information.
    """
    vectors: List[FeatureVector] = field(default_factory=list)
    states: Optional[Sequence[State]] = None

    def add(self, fv: FeatureVector) -> None:
        self.vectors.append(fv)

    def __len__(self) -> int:
        return len(self.vectors)

    def __iter__(self):
        return iter(self.vectors)

    def __getitem__(self, i: int) -> FeatureVector:
        return self.vectors[i]
