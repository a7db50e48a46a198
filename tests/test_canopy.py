import numpy as np
import numpy.testing as npt
import pytest

from cropsim.canopylayers import CanopyLayers, SunlitShadedCanopy
from cropsim.errors import ComputationError, ConfigurationError
from cropsim.leafphotosynthesis import LeafLightResponse
from cropsim.modules import DirectModule
from cropsim.multilayer_canopy import layer_quantity_name, make_multilayer_canopy
from cropsim.system import DynamicalSystem

from conftest import ConstantRate

CANOPY_PARAMETERS = {
    "par_incident_direct": 1200.0,
    "par_incident_diffuse": 300.0,
    "absorptivity_par": 0.85,
    "lai": 4.0,
    "cosine_zenith_angle": 0.8,
    "kd": 0.7,
    "leaf_amax_top": 30.0,
    "kn": 0.5,
    "leaf_alpha": 0.05,
    "leaf_theta": 0.7,
    "leaf_rd": 1.0,
}


def test_layer_fractions_sum_to_one():
    layers = CanopyLayers()
    assert layers.lai_fractions.shape == (10,)
    npt.assert_allclose(layers.lai_fractions.sum(), 1.0)
    npt.assert_allclose(CanopyLayers(nlevmlcan=3, beta_lai_a=1.0, beta_lai_b=1.0).lai_fractions, 1.0 / 3.0)


def test_cast_parameter_over_layers():
    layers = CanopyLayers(nlevmlcan=4)
    npt.assert_array_equal(layers.cast_parameter_over_layers_uniform(2.0), [2.0] * 4)
    npt.assert_allclose(layers.cast_parameter_over_layers_betacdf(8.0, 2.0, 3.5).sum(), 8.0)
    npt.assert_allclose(layers.cast_parameter_over_layers_betacdf(8.0, 2.0, 3.5, method="average").mean(), 8.0)
    with pytest.raises(ValueError):
        layers.cast_parameter_over_layers_betacdf(8.0, 2.0, 3.5, method="median")


def test_cumulative_lai_is_taken_at_layer_midpoints():
    npt.assert_allclose(CanopyLayers(nlevmlcan=2).cumulative_lai([1.0, 1.0]), [0.5, 1.5])


def test_exponential_profile_declines_with_depth():
    layers = CanopyLayers(nlevmlcan=5)
    profile = layers.cast_parameter_over_layers_exp(30.0, 0.5, 4.0)
    assert np.all(np.diff(profile) < 0)
    assert np.all(profile < 30.0)
    npt.assert_array_equal(layers.cast_parameter_over_layers_exp(30.0, 0.5, 0.0), 30.0)


@pytest.mark.parametrize("n", [0, -1, 2.5, True])
def test_invalid_layer_count(n):
    with pytest.raises(ConfigurationError):
        CanopyLayers(nlevmlcan=n)


def test_sunlit_shaded_properties():
    props = SunlitShadedCanopy()
    layers = props.layers(4)
    values = props.calculate(layers, CANOPY_PARAMETERS)
    assert values["absorbed_par"].shape == (2, 4)
    assert values["fraction"].shape == (2, 4)
    assert values["lai"].shape == (4,)
    npt.assert_allclose(values["fraction"].sum(axis=0), 1.0)
    npt.assert_allclose(values["lai"].sum(), 4.0)
    assert np.all(values["absorbed_par"][0] > values["absorbed_par"][1])
    assert np.all(np.diff(values["fraction"][0]) < 0)

    night = props.calculate(layers, dict(CANOPY_PARAMETERS, cosine_zenith_angle=0.0))
    npt.assert_array_equal(night["fraction"][0], 0.0)
    with pytest.raises(ComputationError):
        props.calculate(layers, dict(CANOPY_PARAMETERS, lai=-1.0))


def test_multilayer_canopy_declares_layered_outputs():
    Canopy = make_multilayer_canopy(3, LeafLightResponse)
    assert issubclass(Canopy, DirectModule)
    assert Canopy.get_name() == "multilayer_canopy_3_leaf_light_response"
    assert set(Canopy.get_inputs()) == set(CANOPY_PARAMETERS)
    outputs = Canopy.get_outputs()
    assert len(outputs) == 35
    assert layer_quantity_name("absorbed_par", 0, "sunlit") == "sunlit_absorbed_par_layer_0"
    assert "sunlit_absorbed_par_layer_0" in outputs
    assert "shaded_net_assimilation_rate_layer_2" in outputs
    assert "leaf_amax_layer_1" in outputs
    assert "canopy_net_assimilation_rate" in outputs


def test_multilayer_canopy_in_a_system():
    Canopy = make_multilayer_canopy(5, LeafLightResponse, name="five_layer_canopy")
    system = DynamicalSystem(initial_state={}, parameters=CANOPY_PARAMETERS, direct_modules=[Canopy])
    snap = system.quantities_at([], 0.0)

    gross = 0.0
    for c in ("sunlit", "shaded"):
        for i in range(5):
            weight = snap[layer_quantity_name("fraction", i, c)] * snap[layer_quantity_name("lai", i)]
            gross += snap[layer_quantity_name("gross_assimilation_rate", i, c)] * weight
    npt.assert_allclose(snap["canopy_gross_assimilation_rate"], gross)
    npt.assert_allclose(snap["canopy_net_assimilation_rate"], gross - 1.0 * 4.0)
    assert snap["sunlit_gross_assimilation_rate_layer_0"] > snap["shaded_gross_assimilation_rate_layer_0"]


def test_leaf_failure_names_the_layer():
    Canopy = make_multilayer_canopy(2, LeafLightResponse, name="two_layer_canopy")
    with pytest.raises(ComputationError) as excinfo:
        Canopy().compute(dict(CANOPY_PARAMETERS, leaf_theta=0.0))
    assert excinfo.value.module_name.startswith("two_layer_canopy (sunlit leaves, layer 0")


def test_leaf_module_must_be_a_direct_module():
    with pytest.raises(ConfigurationError):
        make_multilayer_canopy(3, ConstantRate)
