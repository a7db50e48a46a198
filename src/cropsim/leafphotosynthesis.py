"""
Leaf photosynthesis modules
"""

from cropsim.biophysics_funcs import non_rectangular_hyperbola
from cropsim.errors import ComputationError
from cropsim.modules import DirectModule


class LeafLightResponse(DirectModule):
    """
    Leaf CO2 assimilation from a non-rectangular hyperbola light response curve.

    Gross assimilation saturates at leaf_amax with initial slope leaf_alpha and curvature
    leaf_theta; net assimilation subtracts the dark respiration rate leaf_rd.
    """

    name = "leaf_light_response"
    inputs = (
        "absorbed_par",  ## micromol m-2 s-1
        "leaf_amax",     ## micromol m-2 s-1
        "leaf_alpha",    ## mol mol-1
        "leaf_theta",    ## dimensionless
        "leaf_rd",       ## micromol m-2 s-1
    )
    outputs = (
        "gross_assimilation_rate",  ## micromol m-2 s-1
        "net_assimilation_rate",    ## micromol m-2 s-1
    )

    def do_operation(self, q):
        if not 0 < q["leaf_theta"] <= 1:
            raise ComputationError(f"leaf_theta must be in (0, 1], got {q['leaf_theta']:g}", module_name=self.name)
        if q["absorbed_par"] < 0:
            raise ComputationError(f"absorbed_par cannot be negative, got {q['absorbed_par']:g}", module_name=self.name)
        gross = float(non_rectangular_hyperbola(q["absorbed_par"], q["leaf_amax"], q["leaf_alpha"], q["leaf_theta"]))
        return {
            "gross_assimilation_rate": gross,
            "net_assimilation_rate": gross - q["leaf_rd"],
        }
