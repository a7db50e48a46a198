"""
Simulation: Single call entry point that builds a dynamical system and runs it
"""

from typing import Mapping, Optional, Sequence, Tuple, Union

from cropsim.drivers import Drivers
from cropsim.integrator import Integrator
from cropsim.results import RunRecord
from cropsim.settings import SolverSettings
from cropsim.system import DynamicalSystem, ModuleLike


def run_simulation(
    initial_state: Mapping[str, float],
    parameters: Mapping[str, float],
    drivers: Union[Drivers, Mapping[str, Sequence[float]], None],
    direct_modules: Sequence[ModuleLike],
    derivative_modules: Sequence[ModuleLike],
    solver: str = "auto",
    settings: Union[SolverSettings, Mapping, None] = None,
    time_span: Optional[Tuple[float, float]] = None,
) -> RunRecord:
    """
    Runs a crop model described by its modules and returns every quantity at every output time.

    Parameters
    ----------
    initial_state
        Initial value of every state quantity
    parameters
        Constant quantities
    drivers
        Drivers instance, or a mapping with a "time" column and one column per driven quantity
    direct_modules, derivative_modules
        Module classes or registered module names (see ``cropsim.module_library``)
    solver
        Registered system solver name
    settings
        SolverSettings, or a mapping of its fields
    time_span
        (t0, t1); the time range of the drivers by default

    Returns
    -------
    RunRecord
    """
    if settings is None:
        settings = SolverSettings()
    elif not isinstance(settings, SolverSettings):
        settings = SolverSettings.from_mapping(settings)

    system = DynamicalSystem(
        initial_state=initial_state,
        parameters=parameters,
        drivers=drivers,
        direct_modules=direct_modules,
        derivative_modules=derivative_modules,
    )
    integrator = Integrator(solver_name=solver, settings=settings)
    return integrator.integrate(system, time_span=time_span)
