"""
Leaf temperature modules
"""

from cropsim.biophysics_funcs import ABSOLUTE_ZERO, penman_monteith_delta_t
from cropsim.errors import ComputationError
from cropsim.modules import DirectModule, require_positive

VOLUME_OF_ONE_MOLE_OF_AIR = 24.39e-3    ## m3 mol-1, at about 20 degC and 100 kPa (Thornley and Johnson, 1990, p. 418)


class PenmanMonteithLeafTemperature(DirectModule):
    """
    Leaf temperature from the Penman-Monteith leaf energy balance.
    """

    name = "penman_monteith_leaf_temperature"
    inputs = (
        "slope_water_vapor",                  ## kg m-3 K-1
        "psychrometric_parameter",            ## kg m-3 K-1
        "latent_heat_vaporization_of_water",  ## J kg-1
        "leaf_boundary_layer_conductance",    ## m s-1
        "leaf_stomatal_conductance",          ## mmol m-2 s-1
        "leaf_net_irradiance",                ## W m-2, leaf area basis
        "vapor_density_deficit",              ## kg m-3
        "temp",                               ## degC
    )
    outputs = (
        "leaf_temperature",  ## degC
    )

    def do_operation(self, q):
        if q["temp"] <= ABSOLUTE_ZERO:
            raise ComputationError(f"Air temperature {q['temp']:g} degC is below absolute zero", module_name=self.name)
        ga = q["leaf_boundary_layer_conductance"]
        gc = q["leaf_stomatal_conductance"] * 1e-3 * VOLUME_OF_ONE_MOLE_OF_AIR   ## m s-1
        require_positive(
            self.name,
            leaf_boundary_layer_conductance=ga,
            leaf_stomatal_conductance=gc,
            latent_heat_vaporization_of_water=q["latent_heat_vaporization_of_water"],
        )
        delta_t = penman_monteith_delta_t(
            q["slope_water_vapor"],
            q["psychrometric_parameter"],
            q["latent_heat_vaporization_of_water"],
            ga,
            gc,
            q["leaf_net_irradiance"],
            q["vapor_density_deficit"],
        )
        return {"leaf_temperature": q["temp"] + delta_t}
