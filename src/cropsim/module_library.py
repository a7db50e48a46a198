"""
Module library: Lookup of module classes by name, so that module sets can be given as configuration
"""

from typing import Dict, List, Type, Union

from cropsim.errors import ConfigurationError, UnknownModule
from cropsim.leafphotosynthesis import LeafLightResponse
from cropsim.leaftemperature import PenmanMonteithLeafTemperature
from cropsim.lightenvironment import LightMacroEnvironment
from cropsim.modules import Module
from cropsim.multilayer_canopy import make_multilayer_canopy
from cropsim.senescence import OrganSenescence, SenescenceCoefficientLogistic
from cropsim.stomata import BallBerry
from cropsim.thermaltime import DevelopmentIndex, ThermalTimeLinear, ThermalTimePeaked

TenLayerCanopy = make_multilayer_canopy(10, LeafLightResponse, name="ten_layer_canopy")


def _build_library(*modules: Type[Module]) -> Dict[str, Type[Module]]:
    library: Dict[str, Type[Module]] = {}
    for m in modules:
        if m.get_name() in library:
            raise ConfigurationError(f"Module name '{m.get_name()}' is defined more than once")
        library[m.get_name()] = m
    return library


_LIBRARY = _build_library(
    ThermalTimeLinear,
    ThermalTimePeaked,
    DevelopmentIndex,
    SenescenceCoefficientLogistic,
    OrganSenescence,
    LightMacroEnvironment,
    BallBerry,
    PenmanMonteithLeafTemperature,
    LeafLightResponse,
    TenLayerCanopy,
)


def get_module(module: Union[str, Type[Module]]) -> Type[Module]:
    """Returns the module class registered under the given name; module classes are returned unchanged."""
    if isinstance(module, type) and issubclass(module, Module):
        return module
    try:
        return _LIBRARY[module]
    except KeyError:
        raise UnknownModule(module) from None


def get_all_modules() -> List[str]:
    return sorted(_LIBRARY)
