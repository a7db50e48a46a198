"""
Light macro environment module: Partitioning of sunlight into direct and diffuse components by the atmosphere
"""

from cropsim.biophysics_funcs import light_macro_environment
from cropsim.errors import ComputationError
from cropsim.modules import DirectModule, require_positive


class LightMacroEnvironment(DirectModule):
    """
    Calculates the amount of sunlight scattered out of the direct beam by the atmosphere.

    The result is expressed in two ways:

    1. As atmospheric transmittances, the ratios of direct or diffuse light at the Earth's surface
       to incident light at the upper atmosphere.
    2. As fractions of direct and diffuse light at the Earth's surface, appropriate for splitting a
       measured surface irradiance into its direct and diffuse parts.

    Based on chapter 11 of Campbell and Norman, An Introduction to Environmental Biophysics.
    """

    name = "light_macro_environment"
    inputs = (
        "cosine_zenith_angle",        ## dimensionless
        "atmospheric_pressure",       ## Pa
        "atmospheric_transmittance",  ## dimensionless
        "atmospheric_scattering",     ## dimensionless
    )
    outputs = (
        "direct_transmittance",          ## dimensionless
        "diffuse_transmittance",         ## dimensionless
        "irradiance_direct_fraction",    ## dimensionless
        "irradiance_diffuse_fraction",   ## dimensionless
    )

    def do_operation(self, q):
        require_positive(self.name, atmospheric_pressure=q["atmospheric_pressure"])
        if not 0 < q["atmospheric_transmittance"] <= 1:
            raise ComputationError(
                "atmospheric_transmittance must be in (0, 1], got %g" % q["atmospheric_transmittance"],
                module_name=self.name,
            )
        direct_t, diffuse_t, direct_f, diffuse_f = light_macro_environment(
            q["cosine_zenith_angle"],
            q["atmospheric_pressure"],
            q["atmospheric_transmittance"],
            q["atmospheric_scattering"],
        )
        return {
            "direct_transmittance": direct_t,
            "diffuse_transmittance": diffuse_t,
            "irradiance_direct_fraction": direct_f,
            "irradiance_diffuse_fraction": diffuse_f,
        }
