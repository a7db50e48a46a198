import math

import numpy as np
import numpy.testing as npt
import pytest

from cropsim.errors import ComputationError, ConfigurationError, StepRejectionLimitExceeded
from cropsim.registry import default_registry
from cropsim.settings import SolverSettings
from cropsim.solvers import (
    AutoSolver,
    EulerSolver,
    RK4Solver,
    RKCK54Solver,
    RosenbrockSolver,
    ScipyIVPSolver,
    output_times,
)
from cropsim.system import DynamicalSystem
from cropsim.thermaltime import ThermalTimeLinear

from conftest import ConstantRate, ExponentialDecay, FailsAfter, NoChange, StepDependent

ALL_SOLVERS = ["auto", "euler", "rk4", "rkck54", "rosenbrock", "ivp"]


def _decay_system(**kwargs):
    return DynamicalSystem(
        initial_state={"y": 1.0}, parameters={"k": 0.5}, derivative_modules=[ExponentialDecay], **kwargs
    )


def test_output_times():
    npt.assert_array_equal(output_times(0.0, 3.0, 1.0), [0.0, 1.0, 2.0, 3.0])
    npt.assert_allclose(output_times(0.0, 2.5, 1.0), [0.0, 1.0, 2.0, 2.5])
    npt.assert_array_equal(output_times(1.0, 1.0, 1.0), [1.0])
    assert len(output_times(0.0, 1.0, 0.1)) == 11
    with pytest.raises(ConfigurationError):
        output_times(1.0, 0.0, 1.0)


@pytest.mark.parametrize("span, step", [(3.0, 1.0), (10.0, 0.3), (2.5, 1.0), (1.0, 0.1)])
def test_euler_evaluation_count(temperature_system_args, span, step):
    system = DynamicalSystem(**temperature_system_args)
    record = EulerSolver(SolverSettings(step_size=step)).integrate(system, time_span=(0.0, span))
    assert system.call_count == math.ceil(round(span / step, 9))
    assert record.evaluation_count == system.call_count


@pytest.mark.parametrize("span, step", [(3.0, 1.0), (10.0, 0.3), (2.5, 1.0)])
def test_rk4_evaluation_count(temperature_system_args, span, step):
    system = DynamicalSystem(**temperature_system_args)
    RK4Solver(SolverSettings(step_size=step)).integrate(system, time_span=(0.0, span))
    assert system.call_count == 4 * math.ceil(round(span / step, 9))


@pytest.mark.parametrize("solver_name", ALL_SOLVERS)
def test_zero_derivative_conserves_state(solver_name):
    system = DynamicalSystem(initial_state={"x": 5.0}, derivative_modules=[NoChange])
    solver = default_registry().create(solver_name, SolverSettings(step_size=0.5))
    record = solver.integrate(system, time_span=(0.0, 4.0))
    npt.assert_array_equal(record.times, output_times(0.0, 4.0, 0.5))
    npt.assert_allclose(record["x"], 5.0, rtol=0, atol=1e-12)


@pytest.mark.parametrize("solver_cls", [EulerSolver, RK4Solver, RKCK54Solver, RosenbrockSolver])
def test_constant_derivative_is_integrated_exactly(temperature_system_args, solver_cls):
    system = DynamicalSystem(**temperature_system_args)
    record = solver_cls(SolverSettings(step_size=0.7)).integrate(system, time_span=(0.0, 3.0))
    npt.assert_allclose(record["T"], 20.0 + record.times, rtol=1e-10)
    npt.assert_allclose(record["T"][-1], 23.0, rtol=1e-10)


def test_record_holds_every_quantity(temperature_system_args):
    system = DynamicalSystem(**temperature_system_args)
    record = EulerSolver().integrate(system, time_span=(0.0, 3.0))
    npt.assert_array_equal(record["T"], [20.0, 21.0, 22.0, 23.0])
    npt.assert_array_equal(record["time"], [0.0, 1.0, 2.0, 3.0])
    npt.assert_array_equal(record["rate"], 1.0)
    assert record.solver_name == "euler"
    assert record.complete


def test_custom_initial_state(temperature_system_args):
    system = DynamicalSystem(**temperature_system_args)
    record = EulerSolver().integrate(system, initial_state=[0.0], time_span=(0.0, 2.0))
    npt.assert_array_equal(record["T"], [0.0, 1.0, 2.0])


def test_time_span_is_required_without_drivers(temperature_system_args):
    system = DynamicalSystem(**temperature_system_args)
    with pytest.raises(ConfigurationError, match="time span"):
        EulerSolver().integrate(system)


@pytest.mark.parametrize("solver_cls", [RKCK54Solver, RosenbrockSolver, ScipyIVPSolver])
def test_adaptive_solvers_on_exponential_decay(solver_cls):
    settings = SolverSettings(step_size=1.0, rel_error_tolerance=1e-8, abs_error_tolerance=1e-8)
    record = solver_cls(settings).integrate(_decay_system(), time_span=(0.0, 5.0))
    npt.assert_array_equal(record.times, [0.0, 1.0, 2.0, 3.0, 4.0, 5.0])
    npt.assert_allclose(record["y"], np.exp(-0.5 * record.times), rtol=1e-5)


def test_fixed_step_solvers_on_exponential_decay():
    settings = SolverSettings(step_size=0.01)
    euler = EulerSolver(settings).integrate(_decay_system(), time_span=(0.0, 2.0))
    rk4 = RK4Solver(settings).integrate(_decay_system(), time_span=(0.0, 2.0))
    exact = np.exp(-1.0)
    npt.assert_allclose(euler["y"][-1], exact, rtol=1e-2)
    npt.assert_allclose(rk4["y"][-1], exact, rtol=1e-9)


def test_adaptive_steps_stop_at_driver_end():
    drivers = {"time": np.arange(49.0), "temp": np.linspace(10.0, 30.0, 49)}
    for solver_cls in (RK4Solver, RosenbrockSolver, RKCK54Solver):
        system = DynamicalSystem(
            initial_state={"TTc": 0.0},
            parameters={"tbase": 0.0},
            drivers=drivers,
            derivative_modules=[ThermalTimeLinear],
        )
        record = solver_cls().integrate(system)
        assert len(record) == 49
        npt.assert_allclose(record["TTc"][-1], 40.0, rtol=1e-6)


def test_too_many_steps_raises():
    settings = SolverSettings(step_size=5.0, rel_error_tolerance=1e-10, abs_error_tolerance=1e-10, max_steps=1)
    with pytest.raises(StepRejectionLimitExceeded) as excinfo:
        RKCK54Solver(settings).integrate(_decay_system(), time_span=(0.0, 5.0))
    assert excinfo.value.solver_name == "rkck54"
    assert excinfo.value.time == 0.0


def test_auto_uses_rosenbrock_for_compatible_systems():
    record = AutoSolver().integrate(_decay_system(), time_span=(0.0, 2.0))
    assert record.solver_name == "rosenbrock"
    assert not record.fallback_used


def test_auto_falls_back_to_euler_for_incompatible_systems():
    settings = SolverSettings(step_size=0.5)
    auto = AutoSolver(settings).integrate(_decay_system(direct_modules=[StepDependent]), time_span=(0.0, 2.0))
    euler = EulerSolver(settings).integrate(_decay_system(direct_modules=[StepDependent]), time_span=(0.0, 2.0))
    assert auto.solver_name == "euler"
    assert auto.fallback_used
    npt.assert_array_equal(auto.values, euler.values)


def test_auto_falls_back_to_euler_when_rosenbrock_gives_up():
    settings = SolverSettings(step_size=5.0, rel_error_tolerance=1e-10, abs_error_tolerance=1e-10, max_steps=1)
    auto = AutoSolver(settings).integrate(_decay_system(), time_span=(0.0, 5.0))
    euler = EulerSolver(settings).integrate(_decay_system(), time_span=(0.0, 5.0))
    assert auto.solver_name == "euler"
    assert auto.fallback_used
    npt.assert_array_equal(auto["y"], euler["y"])


def test_computation_error_carries_partial_record(temperature_system_args):
    temperature_system_args["parameters"]["threshold"] = 2.5
    temperature_system_args["direct_modules"] = [FailsAfter]
    system = DynamicalSystem(**temperature_system_args)
    with pytest.raises(ComputationError) as excinfo:
        EulerSolver().integrate(system, time_span=(0.0, 5.0))
    err = excinfo.value
    assert err.module_name == "fails_after"
    assert err.time == 3.0
    assert err.evaluation_count == 3
    partial = err.partial_result
    assert not partial.complete
    assert partial.solver_name == "euler"
    npt.assert_array_equal(partial.times, [0.0, 1.0, 2.0])
    npt.assert_array_equal(partial["T"], [20.0, 21.0, 22.0])


def test_runs_are_deterministic():
    first = RKCK54Solver().integrate(_decay_system(), time_span=(0.0, 10.0))
    second = RKCK54Solver().integrate(_decay_system(), time_span=(0.0, 10.0))
    npt.assert_array_equal(first.values, second.values)
    assert first.evaluation_count == second.evaluation_count
