"""Sensor entities for Solar Thermal Simulator: simulation outputs and diagnostics."""
from __future__ import annotations

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorStateClass,
)
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import UnitOfPower, UnitOfTemperature
from homeassistant.core import HomeAssistant, callback
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback

from .const import DOMAIN, FIELD_TANK_WATER_MASS
from .field_access import FIELD_NAMES
from .simulation_state import field_label
from . import SolarThermalSimulator


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    simulator: SolarThermalSimulator = hass.data[DOMAIN][entry.entry_id]

    # One temperature sensor per derived field
    entities: list[SensorEntity] = [
        DerivedFieldSensor(simulator, entry, name)
        for name in FIELD_NAMES
        if simulator.get_field(name).is_derived
    ]
    entities += [
        TankCapacitySensor(simulator, entry),
        HeatFlowSensor(simulator, entry, "q_solar", "Solar Gain", "mdi:weather-sunny"),
        HeatFlowSensor(simulator, entry, "q_panel_loss", "Panel Heat Loss", "mdi:solar-panel"),
        HeatFlowSensor(simulator, entry, "q_panel_net", "Panel Net Gain", "mdi:solar-power"),
        HeatFlowSensor(simulator, entry, "q_pipe_loss", "Pipe Heat Loss", "mdi:pipe"),
        HeatFlowSensor(simulator, entry, "q_tank_loss", "Tank Heat Loss", "mdi:water-boiler"),
        HeatFlowSensor(simulator, entry, "q_net", "Net Heat Flow", "mdi:thermometer-plus"),
    ]

    async_add_entities(entities)


class _Base(SensorEntity):
    _attr_has_entity_name = True
    _attr_should_poll = False

    def __init__(self, sim: SolarThermalSimulator, entry: ConfigEntry) -> None:
        self._sim = sim
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, entry.entry_id)},
            name=entry.title,
            manufacturer="Solar Thermal Simulator",
            model="Lumped Tank Model",
        )
        self._unsub = None

    async def async_added_to_hass(self) -> None:
        self._unsub = self._sim.register_listener(self._on_update)

    async def async_will_remove_from_hass(self) -> None:
        if self._unsub:
            self._unsub()

    @callback
    def _on_update(self) -> None:
        self.async_write_ha_state()


class DerivedFieldSensor(_Base):
    """Read-only view of a field the simulation writes (tank and inlet temperature)."""
    _attr_device_class = SensorDeviceClass.TEMPERATURE
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfTemperature.CELSIUS
    _attr_suggested_display_precision = 2

    def __init__(self, sim, entry, field_name: str):
        super().__init__(sim, entry)
        self._field_name = field_name
        self._attr_unique_id = f"{entry.entry_id}_{field_name}"
        self._attr_name = field_label(field_name)

    @property
    def native_value(self):
        field = self._sim.get_field(self._field_name)
        return round(field.value, 3) if field else None

    @property
    def extra_state_attributes(self):
        field = self._sim.get_field(self._field_name)
        if field is None:
            return {}
        return {"min": field.min, "max": field.max, "tick_count": self._sim.tick_count}


class TankCapacitySensor(_Base):
    """Geometry-derived maximum water mass of the tank."""
    _attr_name = "Tank Capacity"
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = "kg"
    _attr_suggested_display_precision = 1
    _attr_icon = "mdi:cup-water"

    def __init__(self, sim, entry):
        super().__init__(sim, entry)
        self._attr_unique_id = f"{entry.entry_id}_tank_capacity"

    @property
    def native_value(self):
        field = self._sim.get_field(FIELD_TANK_WATER_MASS)
        return round(field.max, 3) if field else None

    @property
    def extra_state_attributes(self):
        field = self._sim.get_field(FIELD_TANK_WATER_MASS)
        if field is None or field.max <= 0:
            return {}
        return {"fill_fraction": round(field.value / field.max, 4)}


class HeatFlowSensor(_Base):
    """One term of the last thermal update, in watts."""
    _attr_device_class = SensorDeviceClass.POWER
    _attr_state_class = SensorStateClass.MEASUREMENT
    _attr_native_unit_of_measurement = UnitOfPower.WATT
    _attr_suggested_display_precision = 1

    def __init__(self, sim, entry, attribute: str, name: str, icon: str):
        super().__init__(sim, entry)
        self._attribute = attribute
        self._attr_unique_id = f"{entry.entry_id}_{attribute}"
        self._attr_name = name
        self._attr_icon = icon

    @property
    def native_value(self):
        return round(getattr(self._sim.heat_flows, self._attribute), 3)
