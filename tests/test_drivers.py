import numpy as np
import numpy.testing as npt
import pytest

from cropsim.drivers import Drivers, interp_nearest_lower_neighbour
from cropsim.errors import ComputationError, ConfigurationError


def test_linear_interpolation():
    drivers = Drivers(times=[0.0, 2.0, 4.0], values={"temp": [10.0, 20.0, 0.0]})
    assert drivers.names == ("temp",)
    assert drivers.time_bounds == (0.0, 4.0)
    npt.assert_allclose(drivers.at(1.0)["temp"], 15.0)
    npt.assert_allclose(drivers.at(3.0)["temp"], 10.0)
    npt.assert_allclose(drivers.at(4.0)["temp"], 0.0)
    assert drivers.is_smooth


def test_piecewise_constant_interpolation():
    drivers = Drivers(times=[0.0, 2.0, 4.0], values={"temp": [10.0, 20.0, 0.0]}, kind="pconst")
    assert drivers.at(1.999)["temp"] == 10.0
    assert drivers.at(2.0)["temp"] == 20.0
    assert drivers.at(4.0)["temp"] == 0.0
    assert not drivers.is_smooth


def test_nearest_lower_neighbour():
    x = np.array([0.0, 1.0, 2.0])
    y = np.array([5.0, 6.0, 7.0])
    assert interp_nearest_lower_neighbour(x, y, 0.5) == 5.0
    assert interp_nearest_lower_neighbour(x, y, 1.0) == 6.0
    assert interp_nearest_lower_neighbour(x, y, 2.0) == 7.0


def test_outside_range_is_a_computation_error():
    drivers = Drivers(times=[0.0, 1.0], values={"temp": [1.0, 2.0]})
    with pytest.raises(ComputationError):
        drivers.at(1.5)
    with pytest.raises(ComputationError):
        drivers.at(-0.5)


def test_from_mapping_uses_the_time_column():
    drivers = Drivers.from_mapping({"time": [0, 1, 2], "temp": [1, 2, 3], "rh": [0.5, 0.6, 0.7]})
    assert drivers.names == ("temp", "rh")
    npt.assert_allclose(drivers.at(0.5)["rh"], 0.55)
    with pytest.raises(ConfigurationError, match="'time' column"):
        Drivers.from_mapping({"temp": [1, 2]})


def test_invalid_tables_are_rejected():
    with pytest.raises(ConfigurationError):
        Drivers(times=[0.0, 0.0], values={"temp": [1.0, 2.0]})
    with pytest.raises(ConfigurationError):
        Drivers(times=[0.0, 1.0], values={"temp": [1.0]})
    with pytest.raises(ConfigurationError):
        Drivers(times=[0.0, 1.0], values={"temp": [1.0, np.nan]})
    with pytest.raises(ConfigurationError):
        Drivers(times=[0.0, 1.0], values={"temp": [1.0, 2.0]}, kind="cubic")


def test_empty_drivers():
    drivers = Drivers.empty()
    assert drivers.names == ()
    assert drivers.at(123.0) == {}
    assert drivers.is_smooth
