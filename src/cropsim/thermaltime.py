"""
Thermal time modules: Accumulation of thermal time and the development index derived from it
"""

from typing import Mapping

from cropsim.biophysics_funcs import ABSOLUTE_ZERO, thermal_time_rate_linear, thermal_time_rate_peaked
from cropsim.errors import ComputationError
from cropsim.modules import DerivativeModule, DirectModule, require_positive

HOURS_PER_DAY = 24.0


def _check_temperature(module_name, temp):
    if temp <= ABSOLUTE_ZERO:
        raise ComputationError(f"Air temperature {temp:g} degC is below absolute zero", module_name=module_name)


class ThermalTimeLinear(DerivativeModule):
    """
    Rate of thermal time accumulation using a linear model with one cardinal temperature.

    rate = 0                  : temp <= tbase
    rate = temp - tbase       : otherwise

    The rate is a daily rate (degC d per day) converted to an hourly rate, because time in cropsim
    systems is expressed in hours. TTc therefore has units of degC d.

    This model tends to overestimate development at high temperatures; see ThermalTimePeaked.
    """

    name = "thermal_time_linear"
    inputs = (
        "temp",   ## degC
        "tbase",  ## degC
    )
    outputs = (
        "TTc",    ## degC d hr-1
    )

    def do_operation(self, q: Mapping[str, float]) -> Mapping[str, float]:
        _check_temperature(self.name, q["temp"])
        rate_per_day = thermal_time_rate_linear(q["temp"], q["tbase"])
        return {"TTc": rate_per_day / HOURS_PER_DAY}


class ThermalTimePeaked(DerivativeModule):
    """
    Rate of thermal time accumulation using the peaked temperature response of Yan and Hunt (1999),
    with base, optimum and upper cardinal temperatures.
    """

    name = "thermal_time_peaked"
    inputs = (
        "temp",   ## degC
        "tbase",  ## degC
        "topt",   ## degC
        "tupp",   ## degC
    )
    outputs = (
        "TTc",    ## degC d hr-1
    )

    def do_operation(self, q: Mapping[str, float]) -> Mapping[str, float]:
        _check_temperature(self.name, q["temp"])
        if not q["tbase"] < q["topt"] < q["tupp"]:
            raise ComputationError(
                "Cardinal temperatures must satisfy tbase < topt < tupp, got tbase=%g, topt=%g, tupp=%g"
                % (q["tbase"], q["topt"], q["tupp"]),
                module_name=self.name,
            )
        rate_per_day = thermal_time_rate_peaked(q["temp"], q["tbase"], q["tupp"], q["topt"])
        return {"TTc": rate_per_day / HOURS_PER_DAY}


class DevelopmentIndex(DirectModule):
    """
    Development index (DVI) as the fraction of the thermal time requirement to maturity.

    DVI is 0 at emergence and 1 at maturity; it keeps increasing past maturity.
    """

    name = "development_index"
    inputs = (
        "TTc",          ## degC d
        "TT_maturity",  ## degC d
    )
    outputs = (
        "DVI",          ## dimensionless
    )

    def do_operation(self, q):
        require_positive(self.name, TT_maturity=q["TT_maturity"])
        return {"DVI": q["TTc"] / q["TT_maturity"]}
