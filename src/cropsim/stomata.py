"""
Stomatal conductance modules
"""

from cropsim.biophysics_funcs import ball_berry_gs
from cropsim.modules import DirectModule, require_positive


class BallBerry(DirectModule):
    """
    Leaf stomatal conductance to water vapour from the Ball-Berry model.
    """

    name = "ball_berry"
    inputs = (
        "net_assimilation_rate",  ## mol m-2 s-1
        "Catm",                   ## mol mol-1
        "rh",                     ## Pa Pa-1
        "b0",                     ## mol m-2 s-1
        "b1",                     ## dimensionless
        "gbw",                    ## mol m-2 s-1
        "leaf_temperature",       ## degC
        "temp",                   ## degC
    )
    outputs = (
        "leaf_stomatal_conductance",  ## mmol m-2 s-1
    )

    def do_operation(self, q):
        require_positive(self.name, gbw=q["gbw"], Catm=q["Catm"])
        gs = ball_berry_gs(
            q["net_assimilation_rate"],
            q["Catm"],
            q["rh"],
            q["b0"],
            q["b1"],
            q["gbw"],
            q["leaf_temperature"],
            q["temp"],
        )
        return {"leaf_stomatal_conductance": gs}
