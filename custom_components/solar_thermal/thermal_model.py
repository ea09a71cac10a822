"""
Thermal simulation stages for the Solar Thermal Simulator.

One tick runs two stages, always in this order and with the same dt:

1. Geometry  (update_geometry)
   ----------------------------
   Cylindrical tank, closed top and bottom, height = k × diameter.
   Total surface A = 2πr·(2kr) + 2πr² = 2πr²(1 + 2k), so

     r        = sqrt(A / (2π(1 + 2k)))
     V        = πr²·h = 2πk·r³
     mass_max = V × ρ_water

   tank_water_mass.max is set to mass_max and the live mass is clamped
   down to it (never up).

2. Thermal  (update_thermal)
   --------------------------
   Lumped single-node tank. Every loss term is driven by
   ΔT = T_tank − T_ambient, so losses cool a tank warmer than ambient and
   heat one colder than ambient.

     Q_solar      = G × A_panel × η
     Q_panel_loss = U_panel × A_panel_loss × ΔT
     Q_pipe_loss  = U_pipe × A_pipe × ΔT
     Q_tank_loss  = U_tank × A_tank × ΔT
     Q_net        = Q_solar − Q_panel_loss − Q_pipe_loss − Q_tank_loss

     ΔT_heat = Q_net·dt / (m·c_p)
     ΔT_load = ṁ_load·(T_tank − T_load)·dt / m
     T_tank' = T_tank + ΔT_heat − ΔT_load

   With m = 0 the tank has no thermal mass and its temperature is held.
   The panel inlet is fully mixed with the tank: water_temp_in = T_tank'.

Both stages are pure arithmetic over already-clamped fields and have no
failure path.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from .const import WATER_DENSITY, WATER_SPECIFIC_HEAT
from .simulation_state import SimulationState


# ---------------------------------------------------------------------------
# Stage 1: geometry
# ---------------------------------------------------------------------------

def tank_capacity(surface_area: float, height_diameter_ratio: float) -> float:
    """Maximum water mass (kg) of a closed cylinder with the given surface and shape."""
    k = height_diameter_ratio
    radius = math.sqrt(surface_area / (2.0 * math.pi * (1.0 + 2.0 * k)))
    volume = 2.0 * math.pi * k * radius ** 3
    return volume * WATER_DENSITY


def update_geometry(state: SimulationState) -> float:
    """Recompute tank_water_mass.max from the tank geometry. Returns the new max."""
    mass_max = tank_capacity(
        state.tank_surface_area.value,
        state.tank_height_diameter_ratio.value,
    )
    state.tank_water_mass.set_max(mass_max)
    return mass_max


# ---------------------------------------------------------------------------
# Stage 2: thermal
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HeatFlows:
    """Heat flow breakdown of one thermal update (W, except temperatures)."""

    q_solar: float = 0.0
    q_panel_loss: float = 0.0
    q_pipe_loss: float = 0.0
    q_tank_loss: float = 0.0
    q_net: float = 0.0
    delta_temp: float = 0.0       # °C from the net heat
    delta_temp_load: float = 0.0  # °C removed by the draw

    @property
    def q_panel_net(self) -> float:
        return self.q_solar - self.q_panel_loss


def update_thermal(state: SimulationState, dt: float) -> HeatFlows:
    """Advance the tank temperature by ``dt`` seconds."""
    tank_temp = state.tank_average_temp.value
    tank_mass = state.tank_water_mass.value
    delta_ambient = tank_temp - state.ambient_temp.value

    q_solar = (
        state.solar_irradiance.value
        * state.panel_area.value
        * state.panel_efficiency.value
    )
    q_panel_loss = (
        state.panel_heat_loss_coefficient.value
        * state.panel_loss_area.value
        * delta_ambient
    )
    q_pipe_loss = (
        state.pipe_overall_heat_transfer_coefficient.value
        * state.pipe_outer_surface_area.value
        * delta_ambient
    )
    q_tank_loss = (
        state.tank_heat_loss_coefficient.value
        * state.tank_surface_area.value
        * delta_ambient
    )
    q_net = q_solar - q_panel_loss - q_pipe_loss - q_tank_loss

    new_temp = tank_temp
    delta_temp = 0.0
    delta_temp_load = 0.0
    if tank_mass > 0:
        delta_temp = q_net * dt / (tank_mass * WATER_SPECIFIC_HEAT)
        delta_temp_load = (
            state.load_mass_flow_rate.value
            * (tank_temp - state.load_temp.value)
            * dt
            / tank_mass
        )
        new_temp = tank_temp + delta_temp - delta_temp_load

    state.tank_average_temp.assign(new_temp)
    # Inlet is the tank bulk, bit for bit
    state.water_temp_in.value = state.tank_average_temp.value

    return HeatFlows(
        q_solar=q_solar,
        q_panel_loss=q_panel_loss,
        q_pipe_loss=q_pipe_loss,
        q_tank_loss=q_tank_loss,
        q_net=q_net,
        delta_temp=delta_temp,
        delta_temp_load=delta_temp_load,
    )


# ---------------------------------------------------------------------------
# Tick
# ---------------------------------------------------------------------------

def run_tick(state: SimulationState, dt: float) -> HeatFlows:
    """One fixed step: geometry first, then thermal, both with the same dt."""
    update_geometry(state)
    return update_thermal(state, dt)
