import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT / "src") not in sys.path:
    sys.path.insert(0, str(ROOT / "src"))

from cropsim.errors import ComputationError  # noqa: E402
from cropsim.modules import DerivativeModule, DirectModule  # noqa: E402


class ConstantRate(DerivativeModule):
    """dT/dt = rate"""
    name = "constant_rate"
    inputs = ("rate",)
    outputs = ("T",)

    def do_operation(self, q):
        return {"T": q["rate"]}


class NoChange(DerivativeModule):
    name = "no_change"
    inputs = ()
    outputs = ("x",)

    def do_operation(self, q):
        return {"x": 0.0}


class ExponentialDecay(DerivativeModule):
    """dy/dt = -k y"""
    name = "exponential_decay"
    inputs = ("y", "k")
    outputs = ("y",)

    def do_operation(self, q):
        return {"y": -q["k"] * q["y"]}


class Doubler(DirectModule):
    name = "doubler"
    inputs = ("a",)
    outputs = ("b",)

    def do_operation(self, q):
        return {"b": 2.0 * q["a"]}


class AddOne(DirectModule):
    name = "add_one"
    inputs = ("b",)
    outputs = ("c",)

    def do_operation(self, q):
        return {"c": q["b"] + 1.0}


class Summer(DirectModule):
    name = "summer"
    inputs = ("b", "c")
    outputs = ("d",)

    def do_operation(self, q):
        return {"d": q["b"] + q["c"]}


class CycleA(DirectModule):
    name = "cycle_a"
    inputs = ("q2",)
    outputs = ("q1",)

    def do_operation(self, q):
        return {"q1": q["q2"]}


class CycleB(DirectModule):
    name = "cycle_b"
    inputs = ("q1",)
    outputs = ("q2",)

    def do_operation(self, q):
        return {"q2": q["q1"]}


class SelfReader(DirectModule):
    name = "self_reader"
    inputs = ("s",)
    outputs = ("s",)

    def do_operation(self, q):
        return {"s": q["s"]}


class FailsAfter(DirectModule):
    """Raises once the simulated time passes the threshold parameter."""
    name = "fails_after"
    inputs = ("time", "threshold")
    outputs = ("ok",)

    def do_operation(self, q):
        if q["time"] > q["threshold"]:
            raise ComputationError("threshold passed", module_name=self.name)
        return {"ok": 1.0}


class ReturnsNaN(DirectModule):
    name = "returns_nan"
    inputs = ()
    outputs = ("bad",)

    def do_operation(self, q):
        return {"bad": float("nan")}


class WrongOutputs(DirectModule):
    name = "wrong_outputs"
    inputs = ()
    outputs = ("declared",)

    def do_operation(self, q):
        return {"undeclared": 1.0}


class StepDependent(DirectModule):
    name = "step_dependent"
    adaptive_compatible = False
    inputs = ()
    outputs = ("per_step",)

    def do_operation(self, q):
        return {"per_step": 0.0}


@pytest.fixture
def temperature_system_args():
    return dict(
        initial_state={"T": 20.0},
        parameters={"rate": 1.0},
        direct_modules=[],
        derivative_modules=[ConstantRate],
    )
