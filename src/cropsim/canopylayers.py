"""
Canopy layers class: Includes parameters and functions to define and discretise the canopy profile into layers,
and the sunlit/shaded canopy properties calculated over those layers.
"""

from typing import Dict, Mapping, Union

import numpy as np
from attrs import define, field
from scipy.stats import beta

from cropsim.errors import ComputationError, ConfigurationError


@define
class CanopyLayers:
    """
    Canopy discretisation into layers, including the vertical distribution of parameters.

    Layer 0 is the top of the canopy and layer nlevmlcan-1 the bottom.
    """
    nlevmlcan: int = field(default=10)  ## Number of layers in multilayer canopy model (10 layers produce similar results to canopies with > 10 layers, see Section 4.3 Bonan et al., 2021, doi:10.1016/j.agrformet.2021.108435)

    # Vertical distribution paramaters for leaf area
    beta_lai_a: float = field(default=2.0)  ## Beta distribution parameter 'alpha' for vertical distribution of leaf area index
    beta_lai_b: float = field(default=3.5)  ## Beta distribution parameter 'beta' for vertical distribution of leaf area index

    lai_fractions: np.ndarray = field(init=False)  ## Fraction of canopy leaf area index in each layer

    @nlevmlcan.validator
    def _check_nlevmlcan(self, attribute, value):
        if isinstance(value, bool) or not isinstance(value, (int, np.integer)) or value < 1:
            raise ConfigurationError(f"Number of canopy layers must be a positive integer, got {value!r}")

    def __attrs_post_init__(self):
        self.lai_fractions = self.cast_parameter_over_layers_betacdf(1.0, self.beta_lai_a, self.beta_lai_b)

    def cast_parameter_over_layers_uniform(self, p: float) -> np.ndarray:
        """
        Assigns vertically resolved parameter assuming constant value over discrete canopy layers.
        """
        return np.full(self.nlevmlcan, float(p))

    def cast_parameter_over_layers_betacdf(self,
        p: float,
        alpha_param: float,
        beta_param: float,
        method: str = "total"
        ) -> np.ndarray:
        """
        Calculate parameter at each canopy layer using the beta distribution. Use the cumulative
        distribution function evaluated at the the top and bottom depths for the layer. The shape
        of the beta distribution is determined by the parameters alpha_param and beta_param. Note
        that alpha_param = beta_param = 1 gives a uniform distribution.

        Parameters
        ----------
        p : float
            Canopy level parameter
        alpha_param : float
            Beta distribution parameter 'alpha'
        beta_param : float
            Beta distribution parameter 'beta'
        method : str
            "total" = the parameter p represents the canopy total, such that: canopy p = sum of multi-layer p generated from this function
            "average" = the parameter p represents the canopy average, such that: canopy p = average of multi-layer p generated from this function

        Returns
        -------
        layer_p : np.ndarray
            Parameter value at each canopy layer, from the top of the canopy downwards

        References
        ----------
        Bonan et al., 2021, doi:10.1016/j.agrformet.2021.108435
        """
        if method == "total":
            pvar = p
        elif method == "average":
            pvar = p * self.nlevmlcan
        else:
            raise ValueError(f"Error: Chosen method, {method}, for casting parameter over canopy layers not available")

        # Boundaries of the layers as relative depth from the top of the canopy
        layer_bounds = np.linspace(0, 1, self.nlevmlcan+1)
        cdf_values = beta.cdf(layer_bounds, alpha_param, beta_param)
        fractions = np.diff(cdf_values)
        return fractions * pvar

    def cumulative_lai(self, dlai: np.ndarray) -> np.ndarray:
        """
        Cumulative leaf area index from the top of the canopy to the middle of each layer, m2 m-2.
        """
        dlai = np.asarray(dlai, dtype=float)
        return np.cumsum(dlai) - 0.5 * dlai

    def cast_parameter_over_layers_exp(
        self,
        ptop: float,
        k: float,
        L_C: float,
        ) -> np.ndarray:
        """
        Calculate parameter at each canopy layer using an exponential decay function. The vertical
        distribution of the parameter follows a decreasing exponential with cumulative relative leaf
        area index from the top of the canopy.

        Parameters
        ----------
        ptop : float
            Parameter value at top-of-canopy
        k : float
            Exponential function shape parameter (exponential decay rate)
        L_C : float
            Canopy leaf area index (total LAI over whole canopy), m2 m-2

        Returns
        -------
        layer_p : array_like
            Parameter value at each canopy layer

        Notes
        -----
        Certain canopy traits (e.g. leaf nitrogen content) are known to decrease exponentially from
        the top to the bottom of the canopy. This can be expressed as: $P(L) = P_0 exp^{-k L/L_C}$
        where $L$ is the cumulative leaf area index from the top of the canopy.

        References
        ----------
        De Pury and Farquhar, 1997, doi:10.1111/j.1365-3040.1997.00094.x
        """
        if L_C <= 0:
            return self.cast_parameter_over_layers_uniform(ptop)
        L = self.cumulative_lai(self.lai_fractions * L_C)
        relative_LAI = L / L_C
        return ptop * np.exp(-k * relative_LAI)


@define
class SunlitShadedCanopy:
    """
    Light environment of sunlit and shaded leaves in each layer of a multilayer canopy.

    Direct beam light is extinguished following Beer's law with the extinction coefficient of a
    spherical leaf angle distribution (kb = 0.5 / cos(zenith)). Diffuse light is extinguished with
    the coefficient kd. The light saturated leaf assimilation rate declines exponentially with
    relative cumulative leaf area index.

    Outputs are split by their dependence on leaf class and layer:

    - multiclass_multilayer_outputs differ for each leaf class and canopy layer
    - pure_multilayer_outputs differ for each canopy layer only
    """

    beta_lai_a: float = field(default=2.0)  ## Beta distribution parameter 'alpha' for vertical distribution of leaf area index
    beta_lai_b: float = field(default=3.5)  ## Beta distribution parameter 'beta' for vertical distribution of leaf area index

    leaf_classes = ("sunlit", "shaded")
    inputs = (
        "par_incident_direct",   ## micromol m-2 s-1, on a surface perpendicular to the beam
        "par_incident_diffuse",  ## micromol m-2 s-1
        "absorptivity_par",      ## dimensionless
        "lai",                   ## m2 m-2
        "cosine_zenith_angle",   ## dimensionless
        "kd",                    ## dimensionless, diffuse light extinction coefficient
        "leaf_amax_top",         ## micromol m-2 s-1, light saturated assimilation at the top of the canopy
        "kn",                    ## dimensionless, decay of leaf_amax with relative cumulative LAI
    )
    multiclass_multilayer_outputs = ("absorbed_par", "fraction")
    pure_multilayer_outputs = ("lai", "cumulative_lai", "leaf_amax")

    def layers(self, nlayers: int) -> CanopyLayers:
        return CanopyLayers(nlevmlcan=nlayers, beta_lai_a=self.beta_lai_a, beta_lai_b=self.beta_lai_b)

    def calculate(self, Layers: CanopyLayers, q: Mapping[str, float]) -> Dict[str, Union[np.ndarray, float]]:
        """
        Returns arrays of shape (len(leaf_classes), nlayers) for multiclass outputs and (nlayers,) for
        pure multilayer outputs.
        """
        lai = q["lai"]
        if lai < 0:
            raise ComputationError(f"Leaf area index cannot be negative, got {lai:g}")
        if not 0 <= q["absorptivity_par"] <= 1:
            raise ComputationError(f"absorptivity_par must be between 0 and 1, got {q['absorptivity_par']:g}")

        dlai = Layers.lai_fractions * lai
        Lc = Layers.cumulative_lai(dlai)

        cosz = q["cosine_zenith_angle"]
        if cosz > 0:
            kb = 0.5 / cosz
            fracsun = np.exp(-kb * Lc)
            direct_absorbed = q["absorptivity_par"] * q["par_incident_direct"] * 0.5
        else:
            fracsun = np.zeros(Layers.nlevmlcan)
            direct_absorbed = 0.0

        diffuse_absorbed = q["absorptivity_par"] * q["par_incident_diffuse"] * np.exp(-q["kd"] * Lc)

        return {
            "absorbed_par": np.vstack([diffuse_absorbed + direct_absorbed, diffuse_absorbed]),
            "fraction": np.vstack([fracsun, 1.0 - fracsun]),
            "lai": dlai,
            "cumulative_lai": Lc,
            "leaf_amax": Layers.cast_parameter_over_layers_exp(q["leaf_amax_top"], q["kn"], lai),
        }
