"""Sources of labeled token sequences.

A sequence provider hands out one sequence of `State`s per call to `next()`
and returns None once the input is exhausted. Providers are single-pass; a
caller that needs two passes over a corpus (such as encoder construction)
opens the source twice.
"""
from __future__ import annotations
from typing import Iterable, Iterator, List, Optional, Protocol, Sequence

from .types import State

__all__ = ["SequenceProvider", "ListSequenceProvider", "iter_sequences"]


class SequenceProvider(Protocol):
    def next(self) -> Optional[List[State]]: ...


class ListSequenceProvider:
    """
    Serves sequences from any iterable, e.g. a list built in memory or a
    generator reading a corpus file.
    """

    def __init__(self, sequences: Iterable[Sequence[State]]):
        self._it = iter(sequences)

    def next(self) -> Optional[List[State]]:
        for states in self._it:
            return list(states)
        return None


def iter_sequences(provider: SequenceProvider) -> Iterator[List[State]]:
    """Iterates a provider until it signals end of input."""
    while True:
        states = provider.next()
        if states is None:
            return
        yield states
