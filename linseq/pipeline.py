"""Turns labeled token sequences into sequences of sparse feature vectors.

`SequenceToFeatureVectors` pulls one sequence at a time from a provider, runs
the template at every position, maps the feature strings through a frozen
`JointFeatureEncoder` and assembles one `FeatureVector` per position. Only the
current sequence is ever materialized, so arbitrarily large corpora can be
streamed. `load_feature_sequences` is the batch convenience that collects
everything into a list.
"""
from __future__ import annotations
from typing import Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from tqdm import tqdm

from .config import Config
from .encoder import JointFeatureEncoder, build_joint_encoder
from .features import FeatureTemplate
from .model import LinearModel
from .providers import SequenceProvider
from .types import FeatureVector, FeatureVectorSequence, Offset, State

__all__ = [
    "encode_position",
    "SequenceToFeatureVectors",
    "load_feature_sequences",
    "prepare_training_data",
]


def encode_position(states: Sequence[State], pos: int, template: FeatureTemplate,
                    encoder: JointFeatureEncoder) -> FeatureVector:
    """
    Builds the feature vector for one position of a sequence.

    Feature strings missing from the vocabulary are dropped. When several
    extractors map to the same id their presence values are summed into a
    single offset, kept at the place of the first occurrence.
    """
    values: Dict[int, float] = {}
    for feature in template.extract(states, pos):
        idx = encoder.index_of(feature)
        if idx is None:
            continue
        values[idx] = values.get(idx, 0.0) + 1.0

    fv = FeatureVector(encoder.label_index(states[pos].label))
    fv.extend(Offset(idx, value) for idx, value in values.items())
    return fv


class SequenceToFeatureVectors:
    """
    A lazy, single-pass source of `FeatureVectorSequence`s.

    Call `next()` until it returns None, or iterate the object directly. Once
    the underlying provider is exhausted the source stays exhausted; it
    cannot be restarted.

    Attributes:
        template: The extractors run at every position.
        encoder: The frozen vocabulary used to map strings to ids.
        save_raw_info: Attach the raw states to every produced sequence.
    """

    def __init__(self, provider: SequenceProvider, template: FeatureTemplate,
                 encoder: JointFeatureEncoder, save_raw_info: bool = False):
        self._provider = provider
        self.template = template
        self.encoder = encoder
        self.save_raw_info = save_raw_info
        self._done = False

    def next(self) -> Optional[FeatureVectorSequence]:
        if self._done:
            return None
        states = self._provider.next()
        if states is None:
            self._done = True
            return None

        sequence = FeatureVectorSequence(states=list(states) if self.save_raw_info else None)
        for pos in range(len(states)):
            sequence.add(encode_position(states, pos, self.template, self.encoder))
        return sequence

    def __iter__(self) -> Iterator[FeatureVectorSequence]:
        return self

    def __next__(self) -> FeatureVectorSequence:
        sequence = self.next()
        if sequence is None:
            raise StopIteration
        return sequence


def load_feature_sequences(provider: SequenceProvider, template: FeatureTemplate,
                           encoder: JointFeatureEncoder, save_raw_info: bool = False,
                           progress: bool = True) -> List[FeatureVectorSequence]:
    """
    Extracts the feature vectors of a whole corpus into memory.

    This is the batch mode: convenient for small corpora and for trainers that
    shuffle, but it holds every sequence at once. Prefer iterating
    `SequenceToFeatureVectors` when the corpus is large.
    """
    source = SequenceToFeatureVectors(provider, template, encoder, save_raw_info)
    sequences = list(tqdm(source, desc="Loading Sequences", unit="seq", disable=not progress))
    if progress:
        print(f"[PIPELINE] Done loading {len(sequences)} sequences.")
    return sequences


def prepare_training_data(cfg: Config, open_provider: Callable[[], SequenceProvider],
                          progress: bool = True) -> Tuple[JointFeatureEncoder, LinearModel, SequenceToFeatureVectors]:
    """
    Sets up everything a trainer needs from a configuration and a corpus.

    The corpus is read twice: once to build the encoder and once, lazily, to
    produce feature vectors. `open_provider` must therefore return a fresh
    provider over the same corpus on every call.

    Args:
        cfg: Supplies the template, `min_value`, model scalars and
             `save_raw_info`.
        open_provider: A factory opening the training corpus.
        progress: Show progress bars and status lines.

    Returns:
        A tuple of the frozen encoder, a zero model with one weight per
        feature id, and a streaming source over the encoded corpus.
    """
    template = cfg.feature_template()
    encoder = build_joint_encoder(open_provider(), template, cfg.min_value, progress=progress)
    model = LinearModel.for_encoder(encoder, cfg.wdiv, cfg.wbias)
    source = SequenceToFeatureVectors(open_provider(), template, encoder, cfg.save_raw_info)
    return encoder, model, source
