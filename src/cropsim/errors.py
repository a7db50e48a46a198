"""
Errors: Exception hierarchy used across the cropsim framework
"""

from typing import Any, Iterable, Optional


class CropSimError(Exception):
    """Base exception for cropsim errors."""


class ConfigurationError(CropSimError, ValueError):
    """A module set, solver name or run setting cannot be used. Raised before any time stepping."""


class MissingInput(ConfigurationError):
    """A module input is neither produced by a module nor defined as a state, parameter or driver."""

    def __init__(self, module_name: str, missing: Iterable[str]):
        self.module_name = module_name
        self.missing = tuple(missing)
        super().__init__(
            f"Module '{module_name}' requires the following quantities which are not produced by any "
            f"module or defined as initial state, parameter or driver: {', '.join(self.missing)}"
        )


class CyclicDependency(ConfigurationError):
    """The requested modules cannot be placed in a producer-before-consumer order."""

    def __init__(self, module_names: Iterable[str]):
        self.module_names = tuple(module_names)
        super().__init__(
            f"Modules have a cyclic dependency and cannot be ordered: {', '.join(self.module_names)}"
        )


class DuplicateOutput(ConfigurationError):
    """Two producers declare the same quantity."""

    def __init__(self, quantity: str, producers: Iterable[str]):
        self.quantity = quantity
        self.producers = tuple(producers)
        super().__init__(
            f"Quantity '{quantity}' has more than one producer: {', '.join(self.producers)}"
        )


class UnknownSolver(ConfigurationError, KeyError):
    """No solver is registered under the requested name."""

    def __init__(self, solver_name: str, available: Iterable[str] = ()):
        self.solver_name = solver_name
        self.available = tuple(available)
        super().__init__(
            f"\"{solver_name}\" was given as a system solver name, but no system solver with that name "
            f"could be found. Available solvers: {', '.join(self.available)}"
        )

    def __str__(self):
        # KeyError would otherwise wrap the message in quotes
        return self.args[0]


class UnknownModule(ConfigurationError, KeyError):
    """No module is registered under the requested name."""

    def __init__(self, module_name: str):
        self.module_name = module_name
        super().__init__(f"\"{module_name}\" was given as a module name, but no module with that name could be found.")

    def __str__(self):
        return self.args[0]


class UnknownQuantity(CropSimError, KeyError):
    """The quantity store has no entry with the requested name."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Quantity '{name}' is not defined in the quantity store")

    def __str__(self):
        return self.args[0]


class ComputationError(CropSimError, ArithmeticError):
    """
    A module evaluation failed, e.g. a non-finite input or an input outside the module's domain.

    The dynamical system and the integrator fill in the context (simulated time, evaluation count,
    solver name) as the error propagates, so the failure can be reproduced from the same inputs.
    """

    def __init__(
        self,
        message: str,
        module_name: Optional[str] = None,
        time: Optional[float] = None,
        evaluation_count: Optional[int] = None,
        solver_name: Optional[str] = None,
    ):
        self.message = message
        self.module_name = module_name
        self.time = time
        self.evaluation_count = evaluation_count
        self.solver_name = solver_name
        self.partial_result: Any = None
        super().__init__(message)

    def __str__(self):
        context = []
        if self.module_name is not None:
            context.append(f"module '{self.module_name}'")
        if self.solver_name is not None:
            context.append(f"solver '{self.solver_name}'")
        if self.time is not None:
            context.append(f"t={self.time:g}")
        if self.evaluation_count is not None:
            context.append(f"evaluation {self.evaluation_count}")
        if not context:
            return self.message
        return f"{self.message} ({', '.join(context)})"


class SolveError(CropSimError, RuntimeError):
    """Custom exception for solver errors."""


class StepRejectionLimitExceeded(SolveError):
    """An adaptive solver used up its evaluation budget or its step size underflowed."""

    def __init__(self, solver_name: str, time: float, evaluation_count: int, reason: str):
        self.solver_name = solver_name
        self.time = time
        self.evaluation_count = evaluation_count
        super().__init__(
            f"Solver '{solver_name}' could not advance past t={time:g} after {evaluation_count} evaluations: {reason}"
        )


class IntegratorError(CropSimError, RuntimeError):
    """Integrator used out of sequence."""


class IntegratorBusy(IntegratorError):
    """integrate() was called while a run was already in progress."""


class ResultNotAvailable(IntegratorError):
    """A result was requested before integrate() had been called."""


__all__ = [
    "CropSimError",
    "ConfigurationError",
    "MissingInput",
    "CyclicDependency",
    "DuplicateOutput",
    "UnknownSolver",
    "UnknownModule",
    "UnknownQuantity",
    "ComputationError",
    "SolveError",
    "StepRejectionLimitExceeded",
    "IntegratorError",
    "IntegratorBusy",
    "ResultNotAvailable",
]
