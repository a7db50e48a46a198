"""
Integrator: Chooses a system solver for a dynamical system, runs it and keeps the result
"""

import logging
from typing import Optional, Tuple

from attrs import define, field

from cropsim.errors import ComputationError, IntegratorBusy, ResultNotAvailable
from cropsim.registry import SolverRegistry, default_registry
from cropsim.results import RunRecord
from cropsim.settings import SolverSettings
from cropsim.solvers import SystemSolver
from cropsim.system import DynamicalSystem

logger = logging.getLogger(__name__)


@define
class Integrator:
    """
    Runs a dynamical system with a named system solver.

    Solvers that need adaptive step sizes are replaced by ``fallback_solver`` when the system cannot
    be evaluated at arbitrary times (see ``DynamicalSystem.is_adaptive_compatible``), unless
    ``check_adaptive_compatible`` is False. The substitution is logged and reported in the run record.
    """

    solver_name: str = field(default="auto")
    settings: SolverSettings = field(factory=SolverSettings)
    registry: SolverRegistry = field(factory=default_registry)
    check_adaptive_compatible: bool = field(default=True)
    fallback_solver: str = field(default="euler")   ## fixed step solver used for adaptive incompatible systems

    integrate_method_has_been_called: bool = field(init=False, default=False)
    state: str = field(init=False, default="idle")   ## "idle" or "running"
    _last_result: Optional[RunRecord] = field(init=False, default=None, repr=False)
    _last_solver: Optional[SystemSolver] = field(init=False, default=None, repr=False)
    _last_system: Optional[DynamicalSystem] = field(init=False, default=None, repr=False)

    def integrate(self, system: DynamicalSystem, time_span: Optional[Tuple[float, float]] = None) -> RunRecord:
        """
        Parameters
        ----------
        system
            Dynamical system to run from its initial state
        time_span
            (t0, t1); the time range of the system's drivers by default

        Returns
        -------
        RunRecord with every quantity at every output time

        Raises
        ------
        UnknownSolver
            ``solver_name`` (or ``fallback_solver``) is not registered. Raised before any evaluation.
        ComputationError
            A module failed. The error carries the solver name and the partial run record.
        """
        if self.state == "running":
            raise IntegratorBusy("integrate() was called while a run is already in progress")

        solver = self.registry.create(self.solver_name, self.settings)
        fallback_used = False
        if solver.requires_adaptive and self.check_adaptive_compatible and not system.is_adaptive_compatible():
            solver = self._handle_adaptive_incompatibility(solver)
            fallback_used = True

        self.integrate_method_has_been_called = True
        self._last_system = system
        self._last_solver = solver
        self._last_result = None
        self.state = "running"
        system.reset_call_count()
        try:
            record = solver.integrate(system, time_span=time_span)
        except ComputationError as err:
            if err.solver_name is None:
                err.solver_name = solver.name
            if err.partial_result is not None:
                err.partial_result.requested_solver_name = self.solver_name
                err.partial_result.fallback_used = err.partial_result.fallback_used or fallback_used
            logger.error("Run with solver '%s' failed: %s", solver.name, err)
            raise
        finally:
            self.state = "idle"

        record.requested_solver_name = self.solver_name
        record.fallback_used = record.fallback_used or fallback_used
        self._last_result = record
        logger.info(
            "Run with solver '%s' finished: %d output times, %d evaluations",
            record.solver_name, len(record), record.evaluation_count,
        )
        return record

    def _handle_adaptive_incompatibility(self, solver: SystemSolver) -> SystemSolver:
        fallback = self.registry.create(self.fallback_solver, self.settings)
        logger.warning(
            "The system is not compatible with adaptive step size solvers; using '%s' instead of '%s'",
            fallback.name, solver.name,
        )
        return fallback

    @property
    def last_result(self) -> RunRecord:
        if self._last_result is None:
            raise ResultNotAvailable("No successful run is available; call integrate() first")
        return self._last_result

    def generate_info_report(self) -> str:
        """Human readable summary of the integrator configuration and the most recent run."""
        lines = [
            f"Requested solver: {self.solver_name}",
            f"Settings: {', '.join(f'{k}={v}' for k, v in self.settings.as_dict().items())}",
            f"Adaptive compatibility check: {'on' if self.check_adaptive_compatible else 'off'}",
        ]
        if not self.integrate_method_has_been_called:
            lines.append("integrate() has not been called")
            return "\n".join(lines)

        lines.append(f"Solver used: {self._last_solver.name}")
        lines.append(f"Evaluations in the most recent run: {self._last_system.call_count}")
        if self._last_result is None:
            lines.append("The most recent run did not complete")
        else:
            record = self._last_result
            if record.fallback_used:
                lines.append(f"A fallback solver was used ({record.solver_name})")
            lines.append(f"Recorded {len(record)} output times from t={record.times[0]:g} to t={record.times[-1]:g}")
        return "\n".join(lines)
