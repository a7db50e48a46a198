import pytest

from cropsim.errors import ComputationError, ConfigurationError
from cropsim.modules import DirectModule, require_positive
from cropsim.quantities import QuantityStore

from conftest import ConstantRate, Doubler, ReturnsNaN, WrongOutputs


def test_metadata_is_available_without_instantiation():
    assert ConstantRate.get_name() == "constant_rate"
    assert ConstantRate.get_inputs() == ("rate",)
    assert ConstantRate.get_outputs() == ("T",)
    assert ConstantRate.is_derivative
    assert not Doubler.is_derivative


def test_name_defaults_to_class_name():
    class Unnamed(DirectModule):
        inputs = ["x"]
        outputs = ["y"]

        def do_operation(self, q):
            return {"y": q["x"]}

    assert Unnamed.get_name() == "Unnamed"
    assert Unnamed.get_inputs() == ("x",)


def test_compute_on_explicit_inputs():
    assert Doubler().compute({"a": 2.0}) == {"b": 4.0}


def test_evaluate_reads_and_writes_the_bound_store():
    store = QuantityStore(names=["a", "b"], values=[3.0, 0.0])
    module = Doubler(store)
    assert module.is_bound
    module.evaluate()
    assert store["b"] == 6.0
    store.set("a", 5.0)
    module.evaluate()
    assert store["b"] == 10.0


def test_unbound_module_cannot_evaluate():
    with pytest.raises(ConfigurationError):
        Doubler().evaluate()


def test_derivative_module_needs_a_derivative_store():
    store = QuantityStore(names=["rate", "T"])
    with pytest.raises(ConfigurationError):
        ConstantRate(store)


def test_derivative_module_writes_to_the_derivative_store():
    store = QuantityStore(names=["rate", "T"], values=[2.0, 20.0])
    derivatives = QuantityStore(names=["T"])
    ConstantRate(store, derivatives).evaluate()
    assert derivatives["T"] == 2.0
    assert store["T"] == 20.0


def test_non_finite_input_is_rejected():
    with pytest.raises(ComputationError) as excinfo:
        Doubler().compute({"a": float("inf")})
    assert excinfo.value.module_name == "doubler"


def test_non_finite_output_is_rejected():
    with pytest.raises(ComputationError, match="Non-finite output"):
        ReturnsNaN().compute({})


def test_undeclared_outputs_are_rejected():
    with pytest.raises(ComputationError, match="do not match declared outputs"):
        WrongOutputs().compute({})


def test_require_positive_names_the_offending_values():
    require_positive("m", a=1.0, b=0.1)
    with pytest.raises(ComputationError, match="b=0"):
        require_positive("m", a=1.0, b=0.0)
