import numpy as np
import numpy.testing as npt
import pytest

from cropsim.errors import ConfigurationError, MissingInput
from cropsim.simulation import run_simulation

WEATHER = {"time": np.arange(49.0), "temp": np.linspace(10.0, 30.0, 49)}


def test_thermal_time_over_two_days():
    record = run_simulation(
        initial_state={"TTc": 0.0},
        parameters={"tbase": 0.0, "TT_maturity": 100.0},
        drivers=WEATHER,
        direct_modules=["development_index"],
        derivative_modules=["thermal_time_linear"],
        solver="rk4",
        settings={"step_size": 1.0},
    )
    assert len(record) == 49
    assert record.requested_solver_name == "rk4"
    npt.assert_allclose(record["TTc"][-1], 40.0, rtol=1e-9)
    npt.assert_allclose(record["DVI"], record["TTc"] / 100.0)
    npt.assert_allclose(record["temp"], WEATHER["temp"])


def test_default_solver_and_time_span():
    record = run_simulation(
        initial_state={"TTc": 0.0},
        parameters={"tbase": 0.0},
        drivers=WEATHER,
        direct_modules=[],
        derivative_modules=["thermal_time_linear"],
        time_span=(0.0, 24.0),
    )
    assert record.requested_solver_name == "auto"
    assert record.solver_name == "rosenbrock"
    npt.assert_allclose(record.times[-1], 24.0)


def test_configuration_errors_surface_before_running():
    with pytest.raises(MissingInput):
        run_simulation({"TTc": 0.0}, {}, None, [], ["thermal_time_linear"], time_span=(0.0, 1.0))
    with pytest.raises(ConfigurationError):
        run_simulation({"TTc": 0.0}, {"tbase": 0.0, "temp": 10.0}, None, [], ["thermal_time_linear"])
