"""
System solvers: Numerical algorithms that advance a dynamical system's state through time
"""

import logging
import math
from typing import Any, ClassVar, Optional, Sequence, Tuple

import numpy as np
from attrs import define, field
from scipy.integrate import solve_ivp
from scipy.linalg import lu_factor, lu_solve

from cropsim.errors import ComputationError, ConfigurationError, SolveError, StepRejectionLimitExceeded
from cropsim.results import RunRecord, RunRecorder
from cropsim.settings import SolverSettings
from cropsim.system import DynamicalSystem

logger = logging.getLogger(__name__)


def output_times(t0: float, t1: float, step_size: float) -> np.ndarray:
    """
    Times at which a run is recorded: t0, t0 + step_size, ..., t1.

    The last step is shortened so that the run ends exactly at t1.
    """
    span = t1 - t0
    if span < 0:
        raise ConfigurationError(f"Time span must not run backwards, got [{t0:g}, {t1:g}]")
    nsteps = max(0, math.ceil(span / step_size - 1e-9))
    times = t0 + step_size * np.arange(nsteps + 1, dtype=float)
    times[-1] = t1 if nsteps > 0 else t0
    return times


@define
class SystemSolver:
    """
    Common interface of every system solver.

    ``integrate`` advances the system from its initial state over a time span and returns the value
    of every quantity at each output time. Subclasses implement ``_integrate``.
    """

    settings: SolverSettings = field(factory=SolverSettings)

    name: ClassVar[str] = ""
    requires_adaptive: ClassVar[bool] = False   ## True if the system must support evaluation at arbitrary times

    def integrate(
        self,
        system: DynamicalSystem,
        initial_state: Optional[Sequence[float]] = None,
        time_span: Optional[Tuple[float, float]] = None,
    ) -> RunRecord:
        """
        Parameters
        ----------
        system
            The dynamical system to integrate
        initial_state
            Initial state vector ordered as ``system.state_names``; the system's initial state by default
        time_span
            (t0, t1); the time range of the system's drivers by default

        Returns
        -------
        RunRecord with every quantity at t0, t0 + step_size, ..., t1
        """
        y0 = system.initial_state_vector() if initial_state is None else np.array(initial_state, dtype=float)
        t0, t1 = self._time_span(system, time_span)
        times = output_times(t0, t1, self.settings.step_size)
        recorder = RunRecorder(system.quantities.names)
        try:
            self._integrate(system, y0, times, recorder)
        except ComputationError as err:
            err.partial_result = recorder.build(
                solver_name=self.name, evaluation_count=system.call_count, complete=False
            )
            raise
        return recorder.build(solver_name=self.name, evaluation_count=system.call_count)

    def _time_span(self, system, time_span):
        if time_span is None:
            time_span = system.time_bounds()
            if time_span is None:
                raise ConfigurationError("A time span is required for a system without drivers")
        t0, t1 = (float(t) for t in time_span)
        if not (np.isfinite(t0) and np.isfinite(t1)):
            raise ConfigurationError(f"Time span must be finite, got [{t0:g}, {t1:g}]")
        return t0, t1

    def _record(self, system, recorder, y, t):
        recorder.append(t, system.record_values(y, t))

    def _check_state(self, system, y, t):
        if not np.all(np.isfinite(y)):
            bad = [n for n, v in zip(system.state_names, y) if not np.isfinite(v)]
            raise ComputationError(
                f"State became non-finite: {', '.join(bad)}",
                time=t, evaluation_count=system.call_count, solver_name=self.name,
            )

    def _integrate(self, system, y0, times, recorder):
        raise NotImplementedError


@define
class EulerSolver(SystemSolver):
    """
    Fixed step explicit Euler: y(t + h) = y(t) + h * f(y, t). One evaluation per step.
    """

    name: ClassVar[str] = "euler"

    def _integrate(self, system, y0, times, recorder):
        y = y0.copy()
        self._record(system, recorder, y, times[0])
        for t, t_next in zip(times[:-1], times[1:]):
            y = y + (t_next - t) * system.derivatives(y, t)
            self._check_state(system, y, t_next)
            self._record(system, recorder, y, t_next)


@define
class RK4Solver(SystemSolver):
    """
    Fixed step classical fourth order Runge-Kutta. Four evaluations per step.
    """

    name: ClassVar[str] = "rk4"

    def _integrate(self, system, y0, times, recorder):
        f = system.derivatives
        y = y0.copy()
        self._record(system, recorder, y, times[0])
        for t, t_next in zip(times[:-1], times[1:]):
            h = t_next - t
            k1 = f(y, t)
            k2 = f(y + 0.5 * h * k1, t + 0.5 * h)
            k3 = f(y + 0.5 * h * k2, t + 0.5 * h)
            k4 = f(y + h * k3, t_next)
            y = y + h / 6.0 * (k1 + 2.0 * k2 + 2.0 * k3 + k4)
            self._check_state(system, y, t_next)
            self._record(system, recorder, y, t_next)


@define
class AdaptiveSolver(SystemSolver):
    """
    Step size control shared by the embedded error estimate solvers.

    Internal steps never cross an output time. A step is accepted when the scaled error norm

        max_i |err_i| / (abs_error_tolerance + rel_error_tolerance * max(|y_i|, |y_new_i|))

    is at most 1. The step size is then rescaled by SAFETY * norm**PGROW (accepted, bounded by
    MAX_GROW) or SAFETY * norm**PSHRNK (rejected, bounded by MIN_SHRINK). A ComputationError from
    the system is never retried.
    """

    requires_adaptive: ClassVar[bool] = True

    SAFETY: ClassVar[float] = 0.9
    PGROW: ClassVar[float] = -0.2
    PSHRNK: ClassVar[float] = -0.25
    MAX_GROW: ClassVar[float] = 5.0
    MIN_SHRINK: ClassVar[float] = 0.1

    def _error_norm(self, y, y_new, err):
        if err.size == 0:
            return 0.0
        scale = self.settings.abs_error_tolerance + self.settings.rel_error_tolerance * np.maximum(np.abs(y), np.abs(y_new))
        norm = float(np.max(np.abs(err) / scale))
        return norm if np.isfinite(norm) else math.inf

    def _prepare(self, system, y, t, t_limit) -> Any:
        """Work that depends only on the position (y, t) and can be reused after a rejected step."""
        return None

    def _step(self, system, y, t, h, prepared) -> Tuple[np.ndarray, np.ndarray]:
        """Returns the new state and its error estimate."""
        raise NotImplementedError

    def _integrate(self, system, y0, times, recorder):
        y = y0.copy()
        t = times[0]
        h = self.settings.step_size
        self._record(system, recorder, y, t)
        n_accepted = 0
        n_rejected = 0
        for t_out in times[1:]:
            nsteps = 0
            prepared = self._prepare(system, y, t, t_out)
            while t < t_out:
                if nsteps >= self.settings.max_steps:
                    raise StepRejectionLimitExceeded(
                        self.name, t, system.call_count,
                        f"more than {self.settings.max_steps} steps were needed to reach t={t_out:g}",
                    )
                remaining = t_out - t
                clipped = h >= remaining * (1 - 1e-10)
                h_try = remaining if clipped else h
                y_new, err = self._step(system, y, t, h_try, prepared)
                nsteps += 1
                norm = self._error_norm(y, y_new, err)
                if norm <= 1.0:
                    n_accepted += 1
                    factor = self.MAX_GROW if norm == 0 else min(self.MAX_GROW, self.SAFETY * norm ** self.PGROW)
                    h_next = h_try * max(1.0, factor)
                    h = max(h, h_next) if clipped else h_next
                    y = y_new
                    t = t_out if clipped else t + h_try
                    if t < t_out:
                        prepared = self._prepare(system, y, t, t_out)
                else:
                    n_rejected += 1
                    factor = self.MIN_SHRINK if not np.isfinite(norm) else max(self.MIN_SHRINK, self.SAFETY * norm ** self.PSHRNK)
                    h = h_try * factor
                    logger.debug("%s rejected step at t=%g (error norm %g), retrying with h=%g", self.name, t, norm, h)
                    if h < 1e-12 * max(1.0, abs(t)):
                        raise StepRejectionLimitExceeded(self.name, t, system.call_count, "step size underflow")
            self._check_state(system, y, t)
            self._record(system, recorder, y, t)
        logger.debug("%s finished with %d accepted and %d rejected steps", self.name, n_accepted, n_rejected)


@define
class RKCK54Solver(AdaptiveSolver):
    """
    Adaptive explicit Runge-Kutta with the Cash-Karp embedded 5(4) pair. Six evaluations per attempted
    step; the first is reused after a rejection.

    References
    ----------
    Cash and Karp (1990) ACM Transactions on Mathematical Software 16, 201-222
    """

    name: ClassVar[str] = "rkck54"

    a2, a3, a4, a5, a6 = 0.2, 0.3, 0.6, 1.0, 0.875
    b21 = 0.2
    b31, b32 = 3.0/40.0, 9.0/40.0
    b41, b42, b43 = 0.3, -0.9, 1.2
    b51, b52, b53, b54 = -11.0/54.0, 2.5, -70.0/27.0, 35.0/27.0
    b61, b62, b63, b64, b65 = 1631.0/55296.0, 175.0/512.0, 575.0/13824.0, 44275.0/110592.0, 253.0/4096.0
    c1, c3, c4, c6 = 37.0/378.0, 250.0/621.0, 125.0/594.0, 512.0/1771.0
    dc1, dc3, dc4, dc5, dc6 = c1 - 2825.0/27648.0, c3 - 18575.0/48384.0, c4 - 13525.0/55296.0, -277.0/14336.0, c6 - 0.25

    def _prepare(self, system, y, t, t_limit):
        return system.derivatives(y, t)

    def _step(self, system, y, t, h, k1):
        f = system.derivatives
        k2 = f(y + h*self.b21*k1, t + self.a2*h)
        k3 = f(y + h*(self.b31*k1 + self.b32*k2), t + self.a3*h)
        k4 = f(y + h*(self.b41*k1 + self.b42*k2 + self.b43*k3), t + self.a4*h)
        k5 = f(y + h*(self.b51*k1 + self.b52*k2 + self.b53*k3 + self.b54*k4), t + self.a5*h)
        k6 = f(y + h*(self.b61*k1 + self.b62*k2 + self.b63*k3 + self.b64*k4 + self.b65*k5), t + self.a6*h)
        y_new = y + h*(self.c1*k1 + self.c3*k3 + self.c4*k4 + self.c6*k6)
        err = h*(self.dc1*k1 + self.dc3*k3 + self.dc4*k4 + self.dc5*k5 + self.dc6*k6)
        return y_new, err


@define
class RosenbrockSolver(AdaptiveSolver):
    """
    Adaptive fourth order Rosenbrock method with an embedded third order error estimate, suited to
    stiff systems.

    The Jacobian and the explicit time derivative are approximated by forward finite differences of
    the system derivatives, so each new position costs n + 2 evaluations (n state quantities) plus two
    per attempted step.

    References
    ----------
    Shampine (1982) ACM Transactions on Mathematical Software 8, 93-113; parameter set as in
    Press et al., Numerical Recipes, section 16.6
    """

    name: ClassVar[str] = "rosenbrock"

    SAFETY: ClassVar[float] = 0.9
    PGROW: ClassVar[float] = -0.25
    PSHRNK: ClassVar[float] = -1.0/3.0
    MAX_GROW: ClassVar[float] = 1.5
    MIN_SHRINK: ClassVar[float] = 0.5

    GAM = 1.0/2.0
    A21 = 2.0
    A31, A32 = 48.0/25.0, 6.0/25.0
    C21 = -8.0
    C31, C32 = 372.0/25.0, 12.0/5.0
    C41, C42, C43 = -112.0/125.0, -54.0/125.0, -2.0/5.0
    B1, B2, B3, B4 = 19.0/9.0, 1.0/2.0, 25.0/108.0, 125.0/108.0
    E1, E2, E3, E4 = 17.0/54.0, 7.0/36.0, 0.0, 125.0/108.0
    C1X, C2X, C3X, C4X = 1.0/2.0, -3.0/2.0, 121.0/50.0, 29.0/250.0
    A2X, A3X = 1.0, 3.0/5.0

    def _prepare(self, system, y, t, t_limit):
        f = system.derivatives
        eps = np.sqrt(np.finfo(float).eps)
        f0 = f(y, t)
        n = y.size
        jac = np.zeros((n, n))
        for j in range(n):
            dy = eps * max(abs(y[j]), 1.0)
            yp = y.copy()
            yp[j] += dy
            jac[:, j] = (f(yp, t) - f0) / dy
        dt = eps * max(abs(t), 1.0)
        if t + dt > t_limit:
            dt = -dt   ## stay inside the interval being integrated
        dfdt = (f(y, t + dt) - f0) / dt
        return f0, jac, dfdt

    def _step(self, system, y, t, h, prepared):
        f0, jac, dfdt = prepared
        if y.size == 0:
            return y.copy(), np.zeros(0)
        lu = lu_factor(np.eye(y.size) / (self.GAM * h) - jac)

        g1 = lu_solve(lu, f0 + h*self.C1X*dfdt)
        f2 = system.derivatives(y + self.A21*g1, t + self.A2X*h)
        g2 = lu_solve(lu, f2 + h*self.C2X*dfdt + self.C21*g1/h)
        f3 = system.derivatives(y + self.A31*g1 + self.A32*g2, t + self.A3X*h)
        g3 = lu_solve(lu, f3 + h*self.C3X*dfdt + (self.C31*g1 + self.C32*g2)/h)
        g4 = lu_solve(lu, f3 + h*self.C4X*dfdt + (self.C41*g1 + self.C42*g2 + self.C43*g3)/h)

        y_new = y + self.B1*g1 + self.B2*g2 + self.B3*g3 + self.B4*g4
        err = self.E1*g1 + self.E2*g2 + self.E3*g3 + self.E4*g4
        return y_new, err


@define
class ScipyIVPSolver(SystemSolver):
    """
    Adaptive integration with scipy.integrate.solve_ivp, recorded at the output times.
    """

    method: str = field(default="LSODA")   ## any method accepted by solve_ivp

    name: ClassVar[str] = "ivp"
    requires_adaptive: ClassVar[bool] = True

    def _integrate(self, system, y0, times, recorder):
        self._record(system, recorder, y0, times[0])
        if len(times) == 1:
            return
        raw = solve_ivp(
            lambda t, y: system.derivatives(y, t),
            t_span=(times[0], times[-1]),
            y0=y0,
            method=self.method,
            t_eval=times,
            rtol=self.settings.rel_error_tolerance,
            atol=self.settings.abs_error_tolerance,
        )
        if not raw.success:
            info = "Your model failed to solve, perhaps there was a runaway feedback?"
            raise SolveError(f"{info}\n{raw.message}")
        for t, y in zip(raw.t[1:], raw.y.T[1:]):
            self._check_state(system, y, t)
            self._record(system, recorder, y, t)


@define
class AutoSolver(SystemSolver):
    """
    Uses the Rosenbrock solver when the system supports adaptive stepping and falls back to the
    Euler solver when it does not, or when the Rosenbrock solver exceeds its step limit.
    """

    name: ClassVar[str] = "auto"

    def integrate(self, system, initial_state=None, time_span=None) -> RunRecord:
        fallback = EulerSolver(self.settings)
        if not system.is_adaptive_compatible():
            logger.info("System is not compatible with adaptive step sizes; auto solver is using '%s'", fallback.name)
            record = fallback.integrate(system, initial_state, time_span)
            record.fallback_used = True
            return record
        try:
            return RosenbrockSolver(self.settings).integrate(system, initial_state, time_span)
        except StepRejectionLimitExceeded as err:
            logger.warning("%s; auto solver is falling back to '%s'", err, fallback.name)
            record = fallback.integrate(system, initial_state, time_span)
            record.fallback_used = True
            return record
