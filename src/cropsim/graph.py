"""
Module graph: Validates a set of modules and resolves the order in which they must be evaluated
"""

import heapq
import logging
from typing import Dict, Iterable, List, Sequence, Set, Tuple, Type

from attrs import define, field

from cropsim.errors import ConfigurationError, CyclicDependency, DuplicateOutput, MissingInput
from cropsim.modules import DerivativeModule, Module

logger = logging.getLogger(__name__)

TIME = "time"    ## built-in quantity, set by the dynamical system before every evaluation


@define(frozen=True)
class ModuleGraph:
    """
    Result of resolving a module set.

    ``direct_order`` lists the direct modules so that every module comes after the modules
    producing its inputs. Derivative modules never feed other modules, so ``derivative_order``
    keeps their registration order and they are evaluated after every direct module.
    """

    direct_order: Tuple[Type[Module], ...]
    derivative_order: Tuple[Type[Module], ...]
    producers: Dict[str, str] = field(factory=dict)   ## quantity name -> name of the module, or source, that owns it

    @property
    def order(self) -> Tuple[Type[Module], ...]:
        return self.direct_order + self.derivative_order

    @property
    def module_names(self) -> List[str]:
        return [m.get_name() for m in self.order]

    def is_adaptive_compatible(self) -> bool:
        return all(m.adaptive_compatible for m in self.order)


def _check_module_types(direct_modules, derivative_modules):
    for m in direct_modules:
        if not (isinstance(m, type) and issubclass(m, Module)) or issubclass(m, DerivativeModule):
            raise ConfigurationError(f"{m!r} was given as a direct module but is not a direct module class")
    for m in derivative_modules:
        if not (isinstance(m, type) and issubclass(m, DerivativeModule)):
            raise ConfigurationError(f"{m!r} was given as a derivative module but is not a derivative module class")


def resolve_module_order(
    direct_modules: Sequence[Type[Module]],
    derivative_modules: Sequence[Type[Module]],
    state_names: Iterable[str],
    parameter_names: Iterable[str],
    driver_names: Iterable[str] = (),
) -> ModuleGraph:
    """
    Builds the producer -> consumer graph for the requested modules and sorts it topologically.

    Ties are broken by registration order (the order of ``direct_modules``), so the same module set
    always gives the same order.

    Raises
    ------
    DuplicateOutput
        Two producers (modules, or a module and a state/parameter/driver) share an output name.
    CyclicDependency
        A module reads its own output, or no producer-before-consumer order exists.
    MissingInput
        A module input is not available from any producer.
    ConfigurationError
        A derivative module declares an output that is not a state quantity.
    """
    direct_modules = list(direct_modules)
    derivative_modules = list(derivative_modules)
    state_names = list(state_names)
    _check_module_types(direct_modules, derivative_modules)

    producers: Dict[str, str] = {TIME: "time"}
    for source, names in (("initial state", state_names), ("parameters", parameter_names), ("drivers", driver_names)):
        for name in names:
            if name in producers:
                raise DuplicateOutput(name, [producers[name], source])
            producers[name] = source

    # Each direct module output has exactly one owner
    output_owner: Dict[str, int] = {}
    for i, m in enumerate(direct_modules):
        for out in m.get_outputs():
            if out in producers:
                raise DuplicateOutput(out, [producers[out], m.get_name()])
            producers[out] = m.get_name()
            output_owner[out] = i

    # Derivative modules write rates of state quantities
    state_set = set(state_names)
    derivative_owner: Dict[str, str] = {}
    for m in derivative_modules:
        for out in m.get_outputs():
            if out not in state_set:
                raise ConfigurationError(
                    f"Derivative module '{m.get_name()}' declares output '{out}', which is not a state quantity"
                )
            if out in derivative_owner:
                raise DuplicateOutput(out, [derivative_owner[out], m.get_name()])
            derivative_owner[out] = m.get_name()

    for m in direct_modules:
        own = set(m.get_inputs()) & set(m.get_outputs())
        if own:
            raise CyclicDependency([m.get_name()])

    for m in direct_modules + derivative_modules:
        missing = [n for n in m.get_inputs() if n not in producers]
        if missing:
            raise MissingInput(m.get_name(), missing)

    # Kahn's algorithm over registration indices
    depends_on: List[Set[int]] = []
    consumers: List[List[int]] = [[] for _ in direct_modules]
    for i, m in enumerate(direct_modules):
        deps = {output_owner[n] for n in m.get_inputs() if n in output_owner}
        depends_on.append(deps)
        for j in sorted(deps):
            consumers[j].append(i)

    remaining = [len(d) for d in depends_on]
    ready = [i for i, n in enumerate(remaining) if n == 0]
    heapq.heapify(ready)
    order: List[int] = []
    while ready:
        i = heapq.heappop(ready)
        order.append(i)
        for j in consumers[i]:
            remaining[j] -= 1
            if remaining[j] == 0:
                heapq.heappush(ready, j)

    if len(order) != len(direct_modules):
        placed = set(order)
        raise CyclicDependency([m.get_name() for i, m in enumerate(direct_modules) if i not in placed])

    graph = ModuleGraph(
        direct_order=tuple(direct_modules[i] for i in order),
        derivative_order=tuple(derivative_modules),
        producers=producers,
    )
    logger.debug("Resolved module order: %s", ", ".join(graph.module_names))
    return graph
