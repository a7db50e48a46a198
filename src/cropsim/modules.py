"""
Modules: Base classes for the pluggable computation units that make up a dynamical system
"""

from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import ClassVar, Dict, Mapping, Optional, Tuple

import numpy as np

from cropsim.errors import ComputationError, ConfigurationError
from cropsim.quantities import QuantityStore


class Module(ABC):
    """
    A unit of computation that reads named input quantities and writes named output quantities.

    The name, inputs and outputs are class attributes so that the dependency graph can be built
    before any module is instantiated. An instance binds to a quantity store by resolving the index
    of every input and output once; ``evaluate`` then reads live values on every call.

    Subclasses implement ``do_operation``, which receives a read-only mapping of the input values
    and returns a mapping with exactly the declared outputs. It must not have any other side effect.
    Domain checks (e.g. negative absolute temperature) belong in ``do_operation`` and are reported
    by raising ``ComputationError``.
    """

    name: ClassVar[str] = ""
    inputs: ClassVar[Tuple[str, ...]] = ()
    outputs: ClassVar[Tuple[str, ...]] = ()
    adaptive_compatible: ClassVar[bool] = True   ## False for modules that only make sense with a fixed time step
    is_derivative: ClassVar[bool] = False

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        if "name" not in cls.__dict__ or not cls.__dict__["name"]:
            cls.name = cls.__name__
        cls.inputs = tuple(cls.inputs)
        cls.outputs = tuple(cls.outputs)

    @classmethod
    def get_name(cls) -> str:
        return cls.name

    @classmethod
    def get_inputs(cls) -> Tuple[str, ...]:
        return cls.inputs

    @classmethod
    def get_outputs(cls) -> Tuple[str, ...]:
        return cls.outputs

    def __init__(self, quantities: Optional[QuantityStore] = None, output_quantities: Optional[QuantityStore] = None):
        self._quantities = quantities
        self._output_quantities = quantities if output_quantities is None else output_quantities
        if quantities is not None:
            self._input_index = np.array([quantities.index(n) for n in self.inputs], dtype=int)
            self._output_index = np.array([self._output_quantities.index(n) for n in self.outputs], dtype=int)

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r})"

    @property
    def is_bound(self) -> bool:
        return self._quantities is not None

    def compute(self, q: Mapping[str, float]) -> Dict[str, float]:
        """
        Runs the calculation on explicit input values without touching any quantity store.

        Checks that the inputs are finite and that exactly the declared outputs are returned, all finite.
        """
        bad = [n for n in self.inputs if not np.isfinite(q[n])]
        if bad:
            raise ComputationError(f"Non-finite input value for {', '.join(bad)}", module_name=self.name)

        result = self.do_operation(MappingProxyType({n: q[n] for n in self.inputs}))

        if set(result.keys()) != set(self.outputs):
            raise ComputationError(
                f"Returned outputs {sorted(result.keys())} do not match declared outputs {sorted(self.outputs)}",
                module_name=self.name,
            )
        bad = [n for n in self.outputs if not np.isfinite(result[n])]
        if bad:
            raise ComputationError(f"Non-finite output value for {', '.join(bad)}", module_name=self.name)
        return {n: float(result[n]) for n in self.outputs}

    def evaluate(self) -> None:
        """Reads the bound inputs, runs the calculation and writes the bound outputs."""
        if not self.is_bound:
            raise ConfigurationError(f"Module '{self.name}' is not bound to a quantity store")
        values = self._quantities.values[self._input_index]
        result = self.compute(dict(zip(self.inputs, values.tolist())))
        self._output_quantities.values[self._output_index] = [result[n] for n in self.outputs]

    @abstractmethod
    def do_operation(self, q: Mapping[str, float]) -> Mapping[str, float]:
        """Computes the outputs from the input values in q."""


class DirectModule(Module):
    """
    Module that computes auxiliary quantities (e.g. light environment, stomatal conductance) from
    the current quantities. Outputs are written to the shared quantity store.
    """


class DerivativeModule(Module):
    """
    Module that computes the rate of change of one or more state quantities.

    Outputs are named after the state quantities they drive and are written to a separate store of
    derivatives, so reading a state name as an input always sees the state value, never its rate.
    """

    is_derivative: ClassVar[bool] = True

    def __init__(self, quantities: Optional[QuantityStore] = None, derivatives: Optional[QuantityStore] = None):
        if quantities is not None and derivatives is None:
            raise ConfigurationError(f"Derivative module '{self.name}' must be bound to a derivative store")
        super().__init__(quantities, derivatives)


def require_positive(module_name: str, **values: float) -> None:
    """Raises ComputationError naming every value that is not strictly positive."""
    bad = [f"{k}={v:g}" for k, v in values.items() if not v > 0]
    if bad:
        raise ComputationError(f"Expected positive values but got {', '.join(bad)}", module_name=module_name)
