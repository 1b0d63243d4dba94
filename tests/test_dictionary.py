import pytest

from linseq.dictionary import DictionaryEncoder


def test_ids_are_sequential_and_stable():
    enc = DictionaryEncoder()

    assert enc.lookup_or_create("B-NP") == 0
    assert enc.lookup_or_create("I-NP") == 1
    assert enc.lookup_or_create("B-NP") == 0
    assert enc.lookup_or_create("O") == 2
    assert len(enc) == 3
    assert list(enc) == ["B-NP", "I-NP", "O"]


def test_custom_base():
    enc = DictionaryEncoder(base=1)

    assert enc.lookup_or_create("a") == 1
    assert enc.lookup_or_create("b") == 2
    assert enc.label_for(2) == "b"


def test_lookup_does_not_create():
    enc = DictionaryEncoder()
    enc.lookup_or_create("seen")

    assert enc.lookup("unseen") is None
    assert "unseen" not in enc
    assert len(enc) == 1


def test_label_for_unknown_id_raises():
    enc = DictionaryEncoder()
    enc.lookup_or_create("x")

    with pytest.raises(KeyError):
        enc.label_for(1)


def test_dict_round_trip_preserves_ids():
    enc = DictionaryEncoder(base=3)
    for name in ["c", "a", "b"]:
        enc.lookup_or_create(name)

    restored = DictionaryEncoder.from_dict(enc.to_dict())

    assert dict(restored.items()) == {"c": 3, "a": 4, "b": 5}


def test_from_dict_rejects_bad_names():
    with pytest.raises(TypeError):
        DictionaryEncoder.from_dict({"names": "abc"})
