import numpy.testing as npt
import pytest

from cropsim.errors import DuplicateOutput, UnknownQuantity
from cropsim.quantities import QuantityStore


def test_from_mappings_keeps_every_source():
    store = QuantityStore.from_mappings(initial_state={"T": 20.0}, parameters={"rate": 1.5, "tbase": 5})
    assert store.names == ("T", "rate", "tbase")
    assert store["T"] == 20.0
    assert store.get("tbase") == 5.0
    assert len(store) == 3
    assert "rate" in store and "missing" not in store


def test_name_defined_in_two_sources_is_rejected():
    with pytest.raises(DuplicateOutput) as excinfo:
        QuantityStore.from_mappings(initial_state={"T": 20.0}, parameters={"T": 1.0})
    assert excinfo.value.quantity == "T"
    assert excinfo.value.producers == ("initial_state", "parameters")


def test_repeated_name_is_rejected():
    with pytest.raises(DuplicateOutput):
        QuantityStore(names=["a", "a"])


def test_unknown_names_raise():
    store = QuantityStore(names=["a"], values=[1.0])
    with pytest.raises(UnknownQuantity):
        store.get("b")
    with pytest.raises(UnknownQuantity):
        store.set("b", 2.0)
    with pytest.raises(KeyError):
        store["b"]


def test_set_overwrites_through_index():
    store = QuantityStore(names=["a", "b"])
    npt.assert_array_equal(store.values, [0.0, 0.0])
    store.set("b", 3.0)
    assert store.values[store.index("b")] == 3.0


def test_snapshot_is_an_immutable_copy():
    store = QuantityStore(names=["a"], values=[1.0])
    snap = store.snapshot()
    store.set("a", 2.0)
    assert snap["a"] == 1.0
    with pytest.raises(TypeError):
        snap["a"] = 5.0


def test_values_must_match_names():
    with pytest.raises(ValueError):
        QuantityStore(names=["a", "b"], values=[1.0])
