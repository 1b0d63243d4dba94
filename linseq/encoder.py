"""Fixed, pruned feature vocabulary shared by training and inference.

Building an encoder is a two-pass affair:

1.  **Counting** (`count_features`): every extractor of the template is run at
    every position of every training sequence and each distinct feature string
    is counted. The gold labels are fed into a `DictionaryEncoder` at the same
    time, producing the attested label set.
2.  **Assignment** (`JointFeatureEncoder.__init__`): strings seen at least
    `min_value` times receive sequential ids in order of first appearance;
    rarer strings are dropped for good.

The finished encoder never changes. Looking up a string it does not know
(pruned in training, or new at inference time) returns None and the caller
simply emits no offset for it. That is the drop policy, not an error.

Because counts are kept in an insertion-ordered dict, the same corpus,
template and threshold always produce the same id assignment.
"""
from __future__ import annotations
import json
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

import pandas as pd
from tqdm import tqdm

from .dictionary import DictionaryEncoder
from .features import FeatureTemplate
from .providers import SequenceProvider, iter_sequences

__all__ = [
    "UNKNOWN_LABEL",
    "JointFeatureEncoder",
    "count_features",
    "build_joint_encoder",
    "vocabulary_report",
]

UNKNOWN_LABEL = -1


class JointFeatureEncoder:
    """
    A frozen mapping from feature strings and labels to integer ids.

    Attributes:
        min_value: The frequency threshold the vocabulary was pruned with.
    """

    def __init__(self, counts: Mapping[str, int], min_value: int, labels: DictionaryEncoder):
        if min_value < 1:
            raise ValueError(f"min_value must be at least 1, got {min_value}.")
        self.min_value = min_value
        self._features: Dict[str, int] = {}
        for feature, count in counts.items():
            if count >= min_value:
                self._features[feature] = len(self._features)
        self._names: List[str] = list(self._features)
        # Private copy: the caller's table may keep growing after the vocabulary is frozen.
        self._labels = DictionaryEncoder.from_dict(labels.to_dict())

    @classmethod
    def from_vocabulary(cls, features: Iterable[str], labels: DictionaryEncoder,
                        min_value: int = 1) -> "JointFeatureEncoder":
        """Rebuilds an encoder whose feature ids follow the order of `features`."""
        encoder = cls({}, min_value, labels)
        for feature in features:
            if feature in encoder._features:
                raise ValueError(f"Duplicate feature '{feature}' in vocabulary.")
            encoder._features[feature] = len(encoder._features)
        encoder._names = list(encoder._features)
        return encoder

    # --- Features ---
    def index_of(self, feature: str) -> Optional[int]:
        """Returns the id of `feature`, or None if it is not in the vocabulary."""
        return self._features.get(feature)

    def feature_for(self, idx: int) -> str:
        return self._names[idx]

    def __contains__(self, feature: object) -> bool:
        return feature in self._features

    def __len__(self) -> int:
        return len(self._names)

    @property
    def features(self) -> Tuple[str, ...]:
        return tuple(self._names)

    # --- Labels ---
    def label_index(self, label: str) -> int:
        """Returns the id of `label`, or `UNKNOWN_LABEL` if it was never attested."""
        idx = self._labels.lookup(label)
        return UNKNOWN_LABEL if idx is None else idx

    def label_for(self, idx: int) -> str:
        return self._labels.label_for(idx)

    @property
    def label_count(self) -> int:
        return len(self._labels)

    # --- Persistence ---
    def to_dict(self) -> dict:
        return {
            "min_value": self.min_value,
            "features": list(self._names),
            "labels": self._labels.to_dict(),
        }

    def save(self, path: str) -> None:
        """Saves the vocabulary as JSON so inference can reuse the exact ids."""
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, ensure_ascii=False, indent=2)

    @classmethod
    def load(cls, path: str) -> "JointFeatureEncoder":
        """
        Loads a vocabulary written by `save`.

        Raises:
            FileNotFoundError: If the file does not exist.
            ValueError: If the file is not valid JSON.
            TypeError: If the JSON does not have the expected structure.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise FileNotFoundError(f"Encoder file not found at: {path}")
        except json.JSONDecodeError as e:
            raise ValueError(f"Error decoding JSON from {path}: {e}")

        if not isinstance(data, dict):
            raise TypeError(f"Encoder file {path} must hold a JSON object.")
        features = data.get("features")
        if not isinstance(features, list) or not all(isinstance(x, str) for x in features):
            raise TypeError(f"Expected a 'features' key with a list of strings in {path}")
        labels = data.get("labels", {})
        if not isinstance(labels, dict):
            raise TypeError(f"Expected 'labels' to be an object in {path}")
        labels = DictionaryEncoder.from_dict(labels)
        return cls.from_vocabulary(features, labels, int(data.get("min_value", 1)))

    def __repr__(self) -> str:
        return (f"JointFeatureEncoder(features={len(self)}, labels={self.label_count}, "
                f"min_value={self.min_value})")


def count_features(provider: SequenceProvider, template: FeatureTemplate,
                   progress: bool = True) -> Tuple[Dict[str, int], DictionaryEncoder]:
    """
    Counts every feature string the template produces over a corpus.

    Args:
        provider: The training sequences. It is consumed completely.
        template: The extractors to run at every position.
        progress: Show a tqdm progress bar while reading the corpus.

    Returns:
        A tuple of the feature counts (in order of first appearance) and a
        `DictionaryEncoder` holding every attested label.
    """
    counts: Dict[str, int] = {}
    labels = DictionaryEncoder()
    for states in tqdm(iter_sequences(provider), desc="Counting Features", unit="seq", disable=not progress):
        for pos, state in enumerate(states):
            labels.lookup_or_create(state.label)
            for feature in template.extract(states, pos):
                counts[feature] = counts.get(feature, 0) + 1
    return counts, labels


def build_joint_encoder(provider: SequenceProvider, template: FeatureTemplate, min_value: int,
                        progress: bool = True) -> JointFeatureEncoder:
    """Counts features over `provider` and freezes those seen at least `min_value` times."""
    counts, labels = count_features(provider, template, progress=progress)
    encoder = JointFeatureEncoder(counts, min_value, labels)
    if progress:
        print(f"[ENCODER] Kept {len(encoder)} of {len(counts)} features (min_value={min_value}); "
              f"{encoder.label_count} labels attested.")
    return encoder


def vocabulary_report(counts: Mapping[str, int], min_value: int) -> pd.DataFrame:
    """
    Tabulates feature frequencies and whether each survives pruning.

    Args:
        counts: Feature counts as returned by `count_features`.
        min_value: The pruning threshold to evaluate.

    Returns:
        A DataFrame with columns `feature`, `count` and `retained`, sorted by
        descending count (ties keep first-appearance order).
    """
    df = pd.DataFrame({"feature": list(counts.keys()), "count": list(counts.values())},
                      columns=["feature", "count"])
    df["count"] = df["count"].astype("int64")
    df["retained"] = df["count"] >= min_value
    return df.sort_values("count", ascending=False, kind="stable").reset_index(drop=True)
