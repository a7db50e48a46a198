"""
Solver registry: Creates system solvers from their names
"""

from functools import lru_cache
from typing import Callable, Dict, List, Optional

from attrs import define, field

from cropsim.errors import UnknownSolver
from cropsim.settings import SolverSettings
from cropsim.solvers import (
    AutoSolver,
    EulerSolver,
    RK4Solver,
    RKCK54Solver,
    RosenbrockSolver,
    ScipyIVPSolver,
    SystemSolver,
)

SolverFactory = Callable[[SolverSettings], SystemSolver]


@define
class SolverRegistry:
    """Maps solver names to factories taking the run's SolverSettings."""

    _factories: Dict[str, SolverFactory] = field(factory=dict, init=False)

    def register(self, name: str, factory: SolverFactory) -> None:
        if name in self._factories:
            raise ValueError(f"A system solver named '{name}' is already registered")
        self._factories[name] = factory

    def create(self, name: str, settings: Optional[SolverSettings] = None) -> SystemSolver:
        try:
            factory = self._factories[name]
        except (KeyError, TypeError):
            raise UnknownSolver(name, self.names()) from None
        return factory(SolverSettings() if settings is None else settings)

    def names(self) -> List[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories


def register_default_solvers(registry: SolverRegistry) -> SolverRegistry:
    for solver in (AutoSolver, EulerSolver, RK4Solver, RKCK54Solver, RosenbrockSolver, ScipyIVPSolver):
        registry.register(solver.name, solver)
    return registry


@lru_cache(maxsize=None)
def default_registry() -> SolverRegistry:
    """The process wide registry holding the built-in solvers: auto, euler, rk4, rkck54, rosenbrock and ivp."""
    return register_default_solvers(SolverRegistry())
