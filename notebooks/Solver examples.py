# ---
# jupyter:
#   jupytext:
#     text_representation:
#       extension: .py
#       format_name: percent
#       format_version: '1.3'
#       jupytext_version: 1.16.1
#   kernelspec:
#     display_name: Python 3 (ipykernel)
#     language: python
#     name: python3
# ---

# %%
import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

# %%
from cropsim.integrator import Integrator
from cropsim.logging_config import setup_logging
from cropsim.module_library import get_all_modules
from cropsim.multilayer_canopy import layer_quantity_name
from cropsim.settings import SolverSettings
from cropsim.simulation import run_simulation
from cropsim.system import DynamicalSystem

# %%
setup_logging()
print("Available modules:", ", ".join(get_all_modules()))

# %% [markdown]
# ## Thermal time and senescence over a season
#
# Hourly air temperature with a diurnal cycle drives thermal time accumulation; the development index
# sets the senescence coefficient of each organ.

# %%
hours = np.arange(0, 24*120 + 1, dtype=float)
temp = 18 + 6*np.sin(2*np.pi*(hours - 9)/24) + 4*np.sin(2*np.pi*hours/(24*365))
weather = {"time": hours, "temp": temp}

parameters = {"tbase": 4.0, "TT_maturity": 1800.0}
for organ in ("Leaf", "Stem", "Root", "Rhizome"):
    parameters["alphaSene" + organ] = 10.0
    parameters["betaSene" + organ] = -10.0
    parameters["rateSene" + organ] = 0.002

system = DynamicalSystem(
    initial_state={"TTc": 0.0, "Leaf": 1.0, "Stem": 0.8, "Root": 0.6, "Rhizome": 0.4},
    parameters=parameters,
    drivers=weather,
    direct_modules=["development_index", "senescence_coefficient_logistic"],
    derivative_modules=["thermal_time_linear", "organ_senescence"],
)
print("Module order:", system.module_order)

# %%
## The senescence module is only valid with a fixed time step, so "auto" uses the Euler solver
integrator = Integrator("auto", SolverSettings(step_size=1.0))
record = integrator.integrate(system)
print(integrator.generate_info_report())

# %%
df = pd.DataFrame(record.as_dict()).set_index("time")
df[["TTc", "DVI", "kSeneLeaf", "Leaf"]].iloc[::24*10]

# %%
fig, axes = plt.subplots(1,2,figsize=(9,3))

axes[0].plot(record.times/24, record["DVI"])
axes[0].set_ylabel("Development index (-)")
axes[0].set_xlabel("Day")

for organ in ("Leaf", "Stem", "Root", "Rhizome"):
    axes[1].plot(record.times/24, record[organ], label=organ)
axes[1].set_ylabel(r"Biomass ($\rm Mg \; ha^{-1}$)")
axes[1].set_xlabel("Day")
axes[1].legend()

plt.tight_layout()

# %% [markdown]
# ## Comparison of system solvers
#
# Thermal time only: every solver can be used, and they agree because the rate is piecewise linear in time.

# %%
fig, ax = plt.subplots(1,1,figsize=(5,3))
for solver in ("euler", "rk4", "rkck54", "rosenbrock", "ivp"):
    r = run_simulation(
        initial_state={"TTc": 0.0},
        parameters={"tbase": 4.0},
        drivers=weather,
        direct_modules=[],
        derivative_modules=["thermal_time_linear"],
        solver=solver,
        settings={"step_size": 6.0},
        time_span=(0, 24*10),
    )
    print("%-10s TTc(day 10) = %.4f, evaluations = %d" % (solver, r["TTc"][-1], r.evaluation_count))
    ax.plot(r.times/24, r["TTc"], label=solver, alpha=0.65)
ax.set_xlabel("Day")
ax.set_ylabel("Thermal time "+r"($\rm ^{\circ}$C d)")
ax.legend()

# %% [markdown]
# ## Ten layer canopy

# %%
canopy_parameters = {
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
canopy = DynamicalSystem(initial_state={}, parameters=canopy_parameters, direct_modules=["ten_layer_canopy"])
q = canopy.quantities_at([], 0.0)

fig, ax = plt.subplots(1,1,figsize=(4,3))
for c in ("sunlit", "shaded"):
    ax.plot([q[layer_quantity_name("net_assimilation_rate", i, c)] for i in range(10)], np.arange(10), label=c)
ax.invert_yaxis()
ax.set_xlabel("Net assimilation\n"+r"($\rm \mu mol \; m^{-2} \; s^{-1}$)")
ax.set_ylabel("Canopy layer")
ax.legend()
print("Canopy net assimilation:", q["canopy_net_assimilation_rate"])
