"""Number entities for Solar Thermal Simulator: one slider per mutable field."""
from __future__ import annotations

import math

from homeassistant.components.number import NumberEntity, NumberMode
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant, callback
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN, FIELD_UNITS
from .field_access import FIELD_NAMES, FieldError
from .simulation_state import field_label
from . import SolarThermalSimulator


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    simulator: SolarThermalSimulator = hass.data[DOMAIN][entry.entry_id]

    entities = [
        FieldNumber(simulator, entry, name)
        for name in FIELD_NAMES
        if not simulator.get_field(name).is_derived
    ]
    async_add_entities(entities)


def _device(entry):
    return DeviceInfo(identifiers={(DOMAIN, entry.entry_id)}, name=entry.title)


def slider_step(lo: float, hi: float) -> float:
    """Roughly a hundred slider positions, rounded to a power of ten."""
    span = hi - lo
    if span <= 0:
        return 1.0
    return 10.0 ** math.floor(math.log10(span)) / 100.0


class FieldNumber(NumberEntity):
    """
    Slider bound to one mutable simulation field.

    Range and value are read live from the field, so the tank mass slider
    follows the geometry-derived capacity. Writes go through the
    simulator's named field access and are clamped there.
    """
    _attr_has_entity_name = True
    _attr_should_poll = False
    _attr_mode = NumberMode.SLIDER

    def __init__(self, sim: SolarThermalSimulator, entry: ConfigEntry, field_name: str) -> None:
        self._sim = sim
        self._field_name = field_name
        self._attr_device_info = _device(entry)
        self._attr_unique_id = f"{entry.entry_id}_{field_name}"
        self._attr_name = field_label(field_name)
        self._attr_native_unit_of_measurement = FIELD_UNITS.get(field_name)
        field = sim.get_field(field_name)
        self._attr_native_step = slider_step(field.min, field.max)
        self._unsub = None

    async def async_added_to_hass(self) -> None:
        self._unsub = self._sim.register_listener(self._on_update)

    async def async_will_remove_from_hass(self) -> None:
        if self._unsub:
            self._unsub()

    @callback
    def _on_update(self) -> None:
        self.async_write_ha_state()

    @property
    def available(self) -> bool:
        return self._sim.get_field(self._field_name) is not None

    @property
    def native_min_value(self) -> float:
        field = self._sim.get_field(self._field_name)
        return field.min if field else 0.0

    @property
    def native_max_value(self) -> float:
        field = self._sim.get_field(self._field_name)
        return field.max if field else 0.0

    @property
    def native_value(self):
        field = self._sim.get_field(self._field_name)
        return field.value if field else None

    async def async_set_native_value(self, value: float) -> None:
        # Out-of-range values are clamped by the field, never rejected
        try:
            self._sim.set_field(self._field_name, value)
        except FieldError as err:
            raise ServiceValidationError(str(err)) from err
