"""
Dynamical system: Couples a resolved module graph with a quantity store and exposes the derivative calculation used by the solvers
"""

import logging
from typing import Mapping, Optional, Sequence, Tuple, Type, Union

import numpy as np
from attrs import define, field

from cropsim.drivers import Drivers
from cropsim.errors import ComputationError
from cropsim.graph import TIME, ModuleGraph, resolve_module_order
from cropsim.module_library import get_module
from cropsim.modules import Module
from cropsim.quantities import QuantityStore

logger = logging.getLogger(__name__)

ModuleLike = Union[str, Type[Module]]


def _as_module_classes(modules: Sequence[ModuleLike]) -> Tuple[Type[Module], ...]:
    return tuple(get_module(m) if isinstance(m, str) else m for m in modules)


def _as_drivers(drivers) -> Drivers:
    if drivers is None:
        return Drivers.empty()
    return Drivers.from_mapping(drivers)


@define
class DynamicalSystem:
    """
    A set of modules evaluated over one quantity store.

    The state quantities are the keys of ``initial_state`` (in insertion order); the derivative
    modules provide their rates of change. Every other quantity is a parameter, a driver, the
    built-in ``time`` quantity or the output of a direct module. The module graph is validated and
    ordered once, here, and reused for every evaluation.
    """

    initial_state: Mapping[str, float] = field(converter=dict)
    parameters: Mapping[str, float] = field(factory=dict, converter=dict)
    drivers: Drivers = field(default=None, converter=_as_drivers)
    direct_modules: Tuple[Type[Module], ...] = field(default=(), converter=_as_module_classes)
    derivative_modules: Tuple[Type[Module], ...] = field(default=(), converter=_as_module_classes)

    graph: ModuleGraph = field(init=False)
    quantities: QuantityStore = field(init=False)
    derivative_values: QuantityStore = field(init=False)
    _direct_instances: Tuple[Module, ...] = field(init=False, repr=False)
    _derivative_instances: Tuple[Module, ...] = field(init=False, repr=False)
    _state_index: np.ndarray = field(init=False, repr=False)
    _time_index: int = field(init=False, repr=False)
    _driver_index: np.ndarray = field(init=False, repr=False)
    _call_count: int = field(init=False, default=0, repr=False)

    def __attrs_post_init__(self):
        self.graph = resolve_module_order(
            self.direct_modules,
            self.derivative_modules,
            state_names=self.initial_state.keys(),
            parameter_names=self.parameters.keys(),
            driver_names=self.drivers.names,
        )

        t0 = self.drivers.time_bounds[0] if self.drivers.values else 0.0
        module_outputs = {out: 0.0 for m in self.graph.direct_order for out in m.get_outputs()}
        self.quantities = QuantityStore.from_mappings(
            initial_state=self.initial_state,
            parameters=self.parameters,
            drivers=self.drivers.at(t0),
            time={TIME: t0},
            module_outputs=module_outputs,
        )
        self.derivative_values = QuantityStore(names=self.state_names)

        self._state_index = np.array([self.quantities.index(n) for n in self.state_names], dtype=int)
        self._time_index = self.quantities.index(TIME)
        self._driver_index = np.array([self.quantities.index(n) for n in self.drivers.names], dtype=int)

        self._direct_instances = tuple(m(self.quantities) for m in self.graph.direct_order)
        self._derivative_instances = tuple(m(self.quantities, self.derivative_values) for m in self.graph.derivative_order)
        logger.debug(
            "Built dynamical system with %d state quantities and %d modules",
            len(self.state_names), len(self.graph.order),
        )

    @property
    def state_names(self) -> Tuple[str, ...]:
        return tuple(self.initial_state.keys())

    @property
    def module_order(self):
        return self.graph.module_names

    @property
    def call_count(self) -> int:
        return self._call_count

    def reset_call_count(self) -> None:
        self._call_count = 0

    def initial_state_vector(self) -> np.ndarray:
        return np.array([self.initial_state[n] for n in self.state_names], dtype=float)

    def time_bounds(self) -> Optional[Tuple[float, float]]:
        """Time range covered by the drivers, or None if the system has no drivers."""
        if not self.drivers.values:
            return None
        return self.drivers.time_bounds

    def is_adaptive_compatible(self) -> bool:
        """
        True if the module set can be evaluated at arbitrary times, as adaptive step size solvers require.

        This is a property of the modules and drivers, not of any particular solver.
        """
        return self.graph.is_adaptive_compatible() and self.drivers.is_smooth

    def derivatives(self, state: Sequence[float], time: float) -> np.ndarray:
        """
        Function to solve i.e. f(t, y) that goes on the RHS of dy/dt = f(t, y)

        Parameters
        ----------
        state
            State vector, ordered as ``state_names``
        time
            Simulated time

        Returns
        -------
            dy / dt (also as a vector, ordered as ``state_names``)
        """
        self._call_count += 1
        self._load(state, time)
        self.derivative_values.values[:] = 0.0
        self._run_modules(self._direct_instances, time)
        self._run_modules(self._derivative_instances, time)
        return self.derivative_values.values.copy()

    def quantities_at(self, state: Sequence[float], time: float):
        """
        Evaluates the direct modules at (state, time) and returns a snapshot of every quantity.

        Used to record output; it does not count as an evaluation.
        """
        self._load(state, time)
        self._run_modules(self._direct_instances, time)
        return self.quantities.snapshot()

    def record_values(self, state: Sequence[float], time: float) -> np.ndarray:
        """Same as ``quantities_at`` but returns the raw value array, ordered as ``quantities.names``."""
        self._load(state, time)
        self._run_modules(self._direct_instances, time)
        return self.quantities.values.copy()

    def _load(self, state, time):
        state = np.asarray(state, dtype=float)
        if state.shape != self._state_index.shape:
            raise ValueError(f"State vector has shape {state.shape}, expected {self._state_index.shape}")
        try:
            driver_values = self.drivers.at(time)
        except ComputationError as err:
            err.time = time
            err.evaluation_count = self._call_count
            raise
        self.quantities.values[self._state_index] = state
        self.quantities.values[self._time_index] = time
        if driver_values:
            self.quantities.values[self._driver_index] = [driver_values[n] for n in self.drivers.names]

    def _run_modules(self, modules, time):
        for module in modules:
            try:
                module.evaluate()
            except ComputationError as err:
                if err.module_name is None:
                    err.module_name = module.name
                err.time = time
                err.evaluation_count = self._call_count
                logger.debug("Module '%s' failed at t=%g: %s", module.name, time, err.message)
                raise
            except (ArithmeticError, ValueError) as err:
                raise ComputationError(
                    str(err), module_name=module.name, time=time, evaluation_count=self._call_count
                ) from err
