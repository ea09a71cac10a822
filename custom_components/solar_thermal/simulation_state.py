"""
Simulation state for the Solar Thermal Simulator.

The whole physical system is described by a fixed set of named
BoundedFields. Each field carries its own inclusive range and a kind:

  mutable : parameters owned by the user (sliders, remote requests)
  derived : outputs owned by the simulation (tank temperature, inlet temp)

Every write goes through BoundedField.assign(), which clamps into
[min, max]. The only bound that ever moves at runtime is
tank_water_mass.max, recomputed from the tank geometry on every tick.

Several fields (pump_flow_rate, cloud_factor, insulation_efficiency,
leak_rate) are read by no equation. They are kept as inert parameters.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


def _clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


class FieldKind(str, Enum):
    """Mutability classification of a BoundedField."""

    MUTABLE = "mutable"
    DERIVED = "derived"


@dataclass
class BoundedField:
    """
    Scalar value with an inclusive valid range.

    Parameters
    ----------
    value : float
        Initial value. Clamped into [min, max] on construction.
    min : float
        Lower bound (inclusive).
    max : float
        Upper bound (inclusive). May be moved by set_max().
    kind : FieldKind
        MUTABLE fields accept external writes; DERIVED fields are written
        by the simulation only.
    """

    value: float
    min: float
    max: float
    kind: FieldKind = FieldKind.MUTABLE

    def __post_init__(self) -> None:
        self.value = _clamp(float(self.value), self.min, self.max)

    @classmethod
    def percentile(cls, value: float) -> BoundedField:
        """A mutable fraction in [0, 1]."""
        return cls(value, 0.0, 1.0, FieldKind.MUTABLE)

    @property
    def is_derived(self) -> bool:
        return self.kind is FieldKind.DERIVED

    def assign(self, value: float) -> float:
        """Clamp-assign a new value. Returns the previous value."""
        old = self.value
        self.value = _clamp(float(value), self.min, self.max)
        return old

    def set_max(self, new_max: float) -> None:
        # Clamp down only; a growing bound never lifts the value.
        self.max = new_max
        if self.value > new_max:
            self.value = new_max

    def as_dict(self) -> dict:
        return {
            "value": self.value,
            "min": self.min,
            "max": self.max,
            "kind": self.kind.value,
        }

    def __str__(self) -> str:
        return f"{self.value:.2f}"


def _mutable(value: float, lo: float, hi: float):
    return field(default_factory=lambda: BoundedField(value, lo, hi, FieldKind.MUTABLE))


def _derived(value: float, lo: float, hi: float):
    return field(default_factory=lambda: BoundedField(value, lo, hi, FieldKind.DERIVED))


def _percentile(value: float):
    return field(default_factory=lambda: BoundedField.percentile(value))


# ---------------------------------------------------------------------------
# State aggregate
# ---------------------------------------------------------------------------

@dataclass
class SimulationState:
    """
    All parameters and state variables of one simulated loop.

    Field names are fixed for the lifetime of the instance. Defaults are the
    shipped literal values; a default outside its
    range (the two heat-loss coefficients) starts at the range minimum.
    """

    # Ambient temperature, °C
    ambient_temp: BoundedField = _mutable(25.0, -88.0, 58.0)
    # Cloud cover fraction (inert)
    cloud_factor: BoundedField = _percentile(0.2)
    # Insulation efficiency fraction (inert)
    insulation_efficiency: BoundedField = _percentile(1.0)
    # Leak rate fraction (inert)
    leak_rate: BoundedField = _percentile(0.0)
    # Hot water draw, kg/s
    load_mass_flow_rate: BoundedField = _mutable(0.1, 0.0, 10.0)
    # Temperature of the water replacing the draw, °C
    load_temp: BoundedField = _mutable(20.0, 10.0, 60.0)
    # Collector area, m²
    panel_area: BoundedField = _mutable(2.0, 1.0, 3.0)
    # Collector efficiency η
    panel_efficiency: BoundedField = _percentile(0.8)
    # Panel heat loss coefficient, W/(m²·K)
    panel_heat_loss_coefficient: BoundedField = _mutable(0.0, 4.0, 19.0)
    # Panel loss area, m²
    panel_loss_area: BoundedField = _mutable(0.1, 0.0, 3.0)
    # Pipe outer surface area, m²
    pipe_outer_surface_area: BoundedField = _mutable(3.0, 0.5, 12.0)
    # Pipe overall heat transfer coefficient, W/(m²·K)
    pipe_overall_heat_transfer_coefficient: BoundedField = _mutable(0.03, 0.02, 0.07)
    # Volumetric pump flow rate, m³/s (inert)
    pump_flow_rate: BoundedField = _mutable(0.05, 0.05, 0.5)
    # Incident solar flux, W/m²
    solar_irradiance: BoundedField = _mutable(800.0, 0.0, 1365.4)
    # Bulk tank temperature, °C
    tank_average_temp: BoundedField = _derived(25.0, 10.0, 60.0)
    # Tank heat loss coefficient, W/(m²·K)
    tank_heat_loss_coefficient: BoundedField = _mutable(0.0, 3.231, 20.0)
    # Tank height / diameter
    tank_height_diameter_ratio: BoundedField = _mutable(2.0, 1.0, 3.0)
    # Total tank surface area, m²
    tank_surface_area: BoundedField = _mutable(5.0, 1.0, 20.0)
    # Water in the tank, kg. The upper bound follows the geometry.
    tank_water_mass: BoundedField = _mutable(100.0, 0.0, 2000.0)
    # Panel inlet temperature, °C
    water_temp_in: BoundedField = _derived(25.0, 10.0, 60.0)

    @classmethod
    def with_panel_efficiency(cls, efficiency: float) -> SimulationState:
        """Build a default state for a given collector variant."""
        state = cls()
        state.panel_efficiency.assign(efficiency)
        return state


def field_label(name: str) -> str:
    """Human label for a snake_case field name (tank_water_mass -> Tank Water Mass)."""
    return " ".join(word[:1].upper() + word[1:] for word in name.split("_"))
