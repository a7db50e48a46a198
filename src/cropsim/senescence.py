"""
Senescence modules: Senescence coefficients and the resulting loss of organ biomass
"""

from cropsim.biophysics_funcs import ksene
from cropsim.errors import ComputationError
from cropsim.modules import DerivativeModule, DirectModule

ORGANS = ("Leaf", "Stem", "Root", "Rhizome")


class SenescenceCoefficientLogistic(DirectModule):
    """
    Fraction of biomass senesced per time step for each organ, as a logistic function of the
    development index:

        kSene = rate / (1 + exp(alpha + beta * DVI))

    The rates are fractions per time step, so results depend on the step size and the module is
    only valid with fixed step solvers.
    """

    name = "senescence_coefficient_logistic"
    adaptive_compatible = False
    inputs = (
        "DVI",               ## dimensionless, development index
        "alphaSeneStem",     ## dimensionless
        "alphaSeneLeaf",     ## dimensionless
        "betaSeneStem",      ## dimensionless
        "betaSeneLeaf",      ## dimensionless
        "rateSeneLeaf",      ## dimensionless, maximum fraction of leaf senesced at a given time step
        "rateSeneStem",      ## dimensionless, maximum fraction of stem senesced at a given time step
        "alphaSeneRoot",     ## dimensionless
        "alphaSeneRhizome",  ## dimensionless
        "betaSeneRoot",      ## dimensionless
        "betaSeneRhizome",   ## dimensionless
        "rateSeneRoot",      ## dimensionless, maximum fraction of root senesced at a given time step
        "rateSeneRhizome",   ## dimensionless, maximum fraction of rhizome senesced at a given time step
    )
    outputs = (
        "kSeneStem",     ## dimensionless
        "kSeneLeaf",     ## dimensionless
        "kSeneRoot",     ## dimensionless
        "kSeneRhizome",  ## dimensionless
    )

    def do_operation(self, q):
        out = {}
        for organ in ORGANS:
            rate = q["rateSene" + organ]
            if not 0 <= rate <= 1:
                raise ComputationError(
                    f"rateSene{organ} must be a fraction between 0 and 1, got {rate:g}", module_name=self.name
                )
            out["kSene" + organ] = ksene(rate, q["alphaSene" + organ], q["betaSene" + organ], q["DVI"])
        return out


class OrganSenescence(DerivativeModule):
    """
    Loss of organ biomass to senescence: d(organ)/dt = -kSene(organ) * organ.
    """

    name = "organ_senescence"
    inputs = ORGANS + tuple("kSene" + organ for organ in ORGANS)
    outputs = ORGANS   ## Mg ha-1 per time step

    def do_operation(self, q):
        for organ in ORGANS:
            if q[organ] < 0:
                raise ComputationError(f"{organ} biomass cannot be negative, got {q[organ]:g}", module_name=self.name)
        return {organ: -q["kSene" + organ] * q[organ] for organ in ORGANS}
