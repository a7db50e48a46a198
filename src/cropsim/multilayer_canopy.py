"""
Multilayer canopy: Builds a canopy module from a layer count, a leaf module and a canopy properties model
"""

from typing import Optional, Type

import numpy as np

from cropsim.canopylayers import SunlitShadedCanopy
from cropsim.errors import ComputationError, ConfigurationError
from cropsim.modules import DirectModule, Module


def layer_quantity_name(base_name: str, layer: int, leaf_class: Optional[str] = None) -> str:
    """Name of a layered quantity, e.g. ``sunlit_absorbed_par_layer_0``."""
    if leaf_class is None:
        return f"{base_name}_layer_{layer}"
    return f"{leaf_class}_{base_name}_layer_{layer}"


def _unique(names):
    seen = []
    for n in names:
        if n not in seen:
            seen.append(n)
    return tuple(seen)


def make_multilayer_canopy(
    nlayers: int,
    leaf_module: Type[Module],
    canopy_properties=None,
    name: Optional[str] = None,
) -> Type[DirectModule]:
    """
    Creates a direct module class that runs ``leaf_module`` for every leaf class in every layer of a canopy.

    Parameters
    ----------
    nlayers : int
        Number of canopy layers
    leaf_module : Module class
        Leaf level module. Inputs whose names match a canopy properties output are taken from the
        corresponding layer (and leaf class); every other input is read from the quantity store.
    canopy_properties : optional
        Canopy properties model, by default ``SunlitShadedCanopy()``. It must provide ``inputs``,
        ``leaf_classes``, ``multiclass_multilayer_outputs`` (including "fraction"),
        ``pure_multilayer_outputs`` (including "lai"), ``layers(nlayers)`` and ``calculate(layers, q)``.
    name : str, optional
        Module name, by default ``multilayer_canopy_<nlayers>_<leaf module name>``

    Returns
    -------
    A DirectModule subclass. Its outputs are every canopy property per layer (and leaf class), every
    leaf output per leaf class and layer, and ``canopy_<leaf output>``: the leaf output integrated over
    the canopy, weighted by each leaf class's fraction of the layer leaf area index.
    """
    if not (isinstance(leaf_module, type) and issubclass(leaf_module, DirectModule)):
        raise ConfigurationError(f"{leaf_module!r} was given as a leaf module but is not a direct module class")
    props = SunlitShadedCanopy() if canopy_properties is None else canopy_properties
    layers = props.layers(nlayers)
    leaf_classes = tuple(props.leaf_classes)
    multiclass = tuple(props.multiclass_multilayer_outputs)
    pure = tuple(props.pure_multilayer_outputs)
    if "fraction" not in multiclass or "lai" not in pure:
        raise ConfigurationError(
            "Canopy properties must provide a 'fraction' output per leaf class and layer and a 'lai' output per layer"
        )
    if name is None:
        name = f"multilayer_canopy_{nlayers}_{leaf_module.get_name()}"

    leaf_inputs = leaf_module.get_inputs()
    leaf_outputs = leaf_module.get_outputs()
    leaf_layer_inputs = [n for n in leaf_inputs if n in multiclass or n in pure]
    leaf_global_inputs = [n for n in leaf_inputs if n not in multiclass and n not in pure]

    inputs = _unique(tuple(props.inputs) + tuple(leaf_global_inputs))
    outputs = (
        tuple(layer_quantity_name(b, i, c) for b in multiclass for c in leaf_classes for i in range(nlayers))
        + tuple(layer_quantity_name(b, i) for b in pure for i in range(nlayers))
        + tuple(layer_quantity_name(o, i, c) for o in leaf_outputs for c in leaf_classes for i in range(nlayers))
        + tuple(f"canopy_{o}" for o in leaf_outputs)
    )
    if len(set(outputs)) != len(outputs):
        raise ConfigurationError(f"Multilayer canopy '{name}' would produce duplicate output names")

    def __init__(self, quantities=None, output_quantities=None):
        DirectModule.__init__(self, quantities, output_quantities)
        self._leaf = leaf_module()

    def do_operation(self, q):
        try:
            values = props.calculate(layers, q)
        except ComputationError as err:
            err.module_name = self.name
            raise

        out = {}
        for b in multiclass:
            for ic, c in enumerate(leaf_classes):
                for i in range(nlayers):
                    out[layer_quantity_name(b, i, c)] = float(values[b][ic, i])
        for b in pure:
            for i in range(nlayers):
                out[layer_quantity_name(b, i)] = float(values[b][i])

        totals = {o: 0.0 for o in leaf_outputs}
        fraction = np.asarray(values["fraction"])
        dlai = np.asarray(values["lai"])
        for ic, c in enumerate(leaf_classes):
            for i in range(nlayers):
                leaf_q = {n: q[n] for n in leaf_global_inputs}
                for b in leaf_layer_inputs:
                    leaf_q[b] = float(values[b][ic, i]) if b in multiclass else float(values[b][i])
                try:
                    leaf_out = self._leaf.compute(leaf_q)
                except ComputationError as err:
                    err.module_name = f"{self.name} ({c} leaves, layer {i}: {leaf_module.get_name()})"
                    raise
                weight = fraction[ic, i] * dlai[i]
                for o in leaf_outputs:
                    out[layer_quantity_name(o, i, c)] = leaf_out[o]
                    totals[o] += leaf_out[o] * weight

        for o, total in totals.items():
            out[f"canopy_{o}"] = total
        return out

    namespace = {
        "__doc__": (
            f"{nlayers} layer canopy running '{leaf_module.get_name()}' for "
            f"{', '.join(leaf_classes)} leaves in each layer."
        ),
        "name": name,
        "inputs": inputs,
        "outputs": outputs,
        "adaptive_compatible": leaf_module.adaptive_compatible,
        "nlayers": nlayers,
        "__init__": __init__,
        "do_operation": do_operation,
    }
    class_name = "".join(part.capitalize() for part in name.split("_"))
    return type(class_name, (DirectModule,), namespace)
