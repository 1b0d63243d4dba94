"""Feature extractors and templates.

A feature extractor looks at a whole token sequence and one position in it and
returns a single feature string. A template is an ordered collection of
extractors; running the template at a position yields one string per
extractor. Extractors must be deterministic and free of side effects, since
the same template is run once to count features and again to encode them.

Besides hand-written extractors, templates can be declared in the familiar
CRF++ syntax, where `%x[row,col]` refers to column `col` of the token `row`
positions away from the current one::

    # Unigram
    U00:%x[-1,0]
    U01:%x[0,0]
    U02:%x[0,0]/%x[0,1]
    B

Positions that fall outside the sequence expand to boundary symbols such as
`_B-1` (one before the start) or `_B+2` (two past the end).
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, List, Protocol, Sequence, Tuple, Union

from .types import State

__all__ = [
    "FeatureExtractor",
    "FunctionExtractor",
    "MacroExtractor",
    "FeatureTemplate",
    "parse_template",
    "load_template",
]

_MACRO = re.compile(r"%x\[\s*(-?\d+)\s*,\s*(\d+)\s*\]")


class FeatureExtractor(Protocol):
    """Produces one feature string for position `pos` of `states`."""

    def run(self, states: Sequence[State], pos: int) -> str: ...


@dataclass(frozen=True)
class FunctionExtractor:
    """Adapts a plain function `(states, pos) -> str` to the extractor interface."""
    fn: Callable[[Sequence[State], int], str]

    def run(self, states: Sequence[State], pos: int) -> str:
        return self.fn(states, pos)


def _boundary(rel: int) -> str:
    return f"_B{rel:+d}"


@dataclass(frozen=True)
class MacroExtractor:
    """
    A CRF++-style unigram template line such as `U02:%x[-1,0]/%x[0,0]`.

    Attributes:
        pattern: The original template text, with its prefix.
        macros: The `(row, col)` pairs referenced by the pattern, in order.
    """
    pattern: str
    macros: Tuple[Tuple[int, int], ...]

    def run(self, states: Sequence[State], pos: int) -> str:
        n = len(states)

        def expand(match: re.Match) -> str:
            row, col = int(match.group(1)), int(match.group(2))
            at = pos + row
            if at < 0:
                return _boundary(at)
            if at >= n:
                return _boundary(at - n + 1)
            fields = states[at].fields
            if col >= len(fields):
                raise ValueError(
                    f"Template '{self.pattern}' refers to column {col}, "
                    f"but the token at position {at} only has {len(fields)} columns."
                )
            return fields[col]

        return _MACRO.sub(expand, self.pattern)


ExtractorLike = Union[FeatureExtractor, Callable[[Sequence[State], int], str]]


@dataclass
class FeatureTemplate:
    """
    An ordered set of feature extractors.

    Attributes:
        extractors: The extractors, run in insertion order.
        bigram: True if the template declared a `B` line. Bigram (label
                transition) features are the concern of a sequence trainer and
                produce no extractor here.
    """
    extractors: List[FeatureExtractor] = field(default_factory=list)
    bigram: bool = False

    def add(self, extractor: ExtractorLike) -> "FeatureTemplate":
        if not hasattr(extractor, "run"):
            if not callable(extractor):
                raise TypeError(f"Expected a feature extractor or a callable, got {type(extractor).__name__}.")
            extractor = FunctionExtractor(extractor)
        self.extractors.append(extractor)
        return self

    def extract(self, states: Sequence[State], pos: int) -> List[str]:
        """Runs every extractor at `pos`, returning one string per extractor."""
        return [extractor.run(states, pos) for extractor in self.extractors]

    def __len__(self) -> int:
        return len(self.extractors)

    def __iter__(self) -> Iterator[FeatureExtractor]:
        return iter(self.extractors)


def parse_template(lines: Sequence[str]) -> FeatureTemplate:
    """
    Builds a `FeatureTemplate` from CRF++-style template lines.

    Blank lines and lines starting with `#` are ignored. A line starting with
    `U` becomes a `MacroExtractor`; a line starting with `B` marks the template
    as using bigram features.

    Args:
        lines: The template lines.

    Returns:
        The parsed template, with extractors in line order.

    Raises:
        ValueError: If a line is neither a comment, a unigram nor a bigram
                    declaration, or a unigram line contains a malformed macro.
    """
    template = FeatureTemplate()
    for lineno, raw in enumerate(lines, start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        kind = line[0]
        if kind == "B":
            template.bigram = True
            continue
        if kind != "U":
            raise ValueError(f"Line {lineno}: unsupported template line '{line}'.")

        macros = tuple((int(r), int(c)) for r, c in _MACRO.findall(line))
        leftover = _MACRO.sub("", line)
        if "%x" in leftover:
            raise ValueError(f"Line {lineno}: malformed macro in '{line}'.")
        template.add(MacroExtractor(line, macros))
    return template


def load_template(path: str) -> FeatureTemplate:
    """
    Reads a CRF++-style template file.

    Raises:
        FileNotFoundError: If the template file does not exist.
    """
    try:
        text = Path(path).read_text(encoding="utf-8")
    except FileNotFoundError:
        raise FileNotFoundError(f"Template file not found at: {path}")
    return parse_template(text.splitlines())
