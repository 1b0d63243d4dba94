from __future__ import annotations
from typing import Dict, ItemsView, Iterator, List, Optional

__all__ = ["DictionaryEncoder"]


class DictionaryEncoder:
    """
    A string-to-id table that grows as new strings are seen.

    Ids are handed out sequentially from `base` in order of first appearance.
    An id, once assigned, is never changed or reclaimed and there is no removal
    operation, so the table only ever grows. Each instance owns its table;
    nothing is shared between encoders.

    Attributes:
        base: The id assigned to the first string.
    """

    def __init__(self, base: int = 0):
        self.base = base
        self._ids: Dict[str, int] = {}
        self._names: List[str] = []

    def lookup_or_create(self, name: str) -> int:
        """Returns the id of `name`, assigning the next free id if it is new."""
        idx = self._ids.get(name)
        if idx is None:
            idx = self.base + len(self._names)
            self._ids[name] = idx
            self._names.append(name)
        return idx

    def lookup(self, name: str) -> Optional[int]:
        """Returns the id of `name`, or None if it has never been seen."""
        return self._ids.get(name)

    def label_for(self, idx: int) -> str:
        """
        Returns the string that was assigned `idx`.

        Raises:
            KeyError: If no string has been assigned that id.
        """
        pos = idx - self.base
        if pos < 0 or pos >= len(self._names):
            raise KeyError(idx)
        return self._names[pos]

    def items(self) -> ItemsView[str, int]:
        return self._ids.items()

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._ids

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def to_dict(self) -> dict:
        return {"base": self.base, "names": list(self._names)}

    @classmethod
    def from_dict(cls, data: dict) -> "DictionaryEncoder":
        """
        Rebuilds an encoder from `to_dict` output, preserving every id.

        Raises:
            TypeError: If `names` is not a list of strings.
        """
        names = data.get("names", [])
        if not isinstance(names, list) or not all(isinstance(n, str) for n in names):
            raise TypeError("Expected 'names' to be a list of strings.")
        encoder = cls(int(data.get("base", 0)))
        for name in names:
            encoder.lookup_or_create(name)
        return encoder
