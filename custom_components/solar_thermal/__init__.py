"""Solar Thermal Simulator integration for Home Assistant."""
from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timedelta
from typing import Any

import voluptuous as vol

from homeassistant.config_entries import ConfigEntry
from homeassistant.const import Platform
from homeassistant.core import (
    HomeAssistant,
    ServiceCall,
    ServiceResponse,
    SupportsResponse,
    callback,
)
from homeassistant.exceptions import ServiceValidationError
from homeassistant.helpers import device_registry as dr, entity_registry as er
from homeassistant.helpers.event import async_track_time_interval

from .const import (
    DOMAIN,
    CONF_TICK_SECONDS,
    CONF_PANEL_EFFICIENCY_VARIANT,
    DEFAULT_TICK_SECONDS,
    DEFAULT_PANEL_EFFICIENCY_VARIANT,
    PANEL_EFFICIENCY_VARIANTS,
    SERVICE_UPDATE_FIELD,
    SERVICE_GET_FIELDS,
)
from .field_access import (
    FieldError,
    FieldUpdate,
    StateUnavailableError,
    apply_update_request,
    enumerate_fields,
    get_field,
    set_field,
)
from .simulation_state import BoundedField, SimulationState
from .thermal_model import HeatFlows, run_tick, update_geometry

_LOGGER = logging.getLogger(__name__)

PLATFORMS = [Platform.NUMBER, Platform.SENSOR]

_TARGET_KEYS = ("device_id", "entity_id", "area_id")

_TARGET_SCHEMA = {
    # Target keys injected by the frontend
    vol.Optional("device_id"): vol.Any(str, [str]),
    vol.Optional("entity_id"): vol.Any(str, [str]),
    vol.Optional("area_id"): vol.Any(str, [str]),
}

# Field name and value are validated by field_access so the caller gets the
# empty / malformed / unknown distinction rather than a schema error.
_UPDATE_FIELD_SERVICE_SCHEMA = vol.Schema(_TARGET_SCHEMA, extra=vol.ALLOW_EXTRA)

_GET_FIELDS_SERVICE_SCHEMA = vol.Schema(_TARGET_SCHEMA)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Set up Solar Thermal Simulator from a config entry."""
    hass.data.setdefault(DOMAIN, {})
    config = {**entry.data, **entry.options}
    simulator = SolarThermalSimulator(hass, entry, config)
    hass.data[DOMAIN][entry.entry_id] = simulator
    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    simulator.async_start()
    entry.async_on_unload(entry.add_update_listener(_async_update_options))

    # Register once per domain; later entries reuse the handlers
    if not hass.services.has_service(DOMAIN, SERVICE_UPDATE_FIELD):
        _register_services(hass)

    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """Unload a config entry."""
    # Entities go first so none of them can write into a stopped simulator
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not unload_ok:
        return False
    simulator: SolarThermalSimulator = hass.data[DOMAIN].pop(entry.entry_id)
    simulator.async_stop()
    # Remove the services only when the last instance is unloaded
    if not hass.data[DOMAIN]:
        hass.services.async_remove(DOMAIN, SERVICE_UPDATE_FIELD)
        hass.services.async_remove(DOMAIN, SERVICE_GET_FIELDS)
    return True


async def _async_update_options(hass: HomeAssistant, entry: ConfigEntry) -> None:
    await hass.config_entries.async_reload(entry.entry_id)


# ---------------------------------------------------------------------------
# Services (remote control endpoint)
# ---------------------------------------------------------------------------

def _as_list(value) -> list[str]:
    # Normalize to a list to handle both single and multiple selections
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)


def _targeted_simulators(hass: HomeAssistant, call: ServiceCall) -> dict[str, SolarThermalSimulator]:
    """
    Simulators addressed by the call; all of them when the call has no target.

    Devices, entities and areas resolve to config entries through the
    registries. A target that resolves to no loaded simulator is rejected so
    a targeted write can never land on the wrong instance.
    """
    simulators: dict[str, SolarThermalSimulator] = hass.data.get(DOMAIN, {})
    device_ids = _as_list(call.data.get("device_id"))
    entity_ids = _as_list(call.data.get("entity_id"))
    area_ids = _as_list(call.data.get("area_id"))

    if not (device_ids or entity_ids or area_ids):
        if not simulators:
            raise ServiceValidationError("No solar thermal simulator is loaded")
        return dict(simulators)

    dev_reg = dr.async_get(hass)
    ent_reg = er.async_get(hass)
    selected: dict[str, SolarThermalSimulator] = {}

    def _select(entry_ids, target: str) -> None:
        matched = [entry_id for entry_id in entry_ids if entry_id in simulators]
        if not matched:
            raise ServiceValidationError(
                f"Target {target} does not belong to a solar thermal simulator"
            )
        for entry_id in matched:
            selected[entry_id] = simulators[entry_id]

    for device_id in device_ids:
        device = dev_reg.async_get(device_id)
        # Each simulator device has exactly one config entry
        _select(device.config_entries if device else (), device_id)

    for entity_id in entity_ids:
        entity = ent_reg.async_get(entity_id)
        _select((entity.config_entry_id,) if entity else (), entity_id)

    for area_id in area_ids:
        entry_ids = [
            entry_id
            for device in dr.async_entries_for_area(dev_reg, area_id)
            for entry_id in device.config_entries
        ]
        entry_ids += [
            entity.config_entry_id
            for entity in er.async_entries_for_area(ent_reg, area_id)
        ]
        _select(entry_ids, area_id)

    return selected


def _register_services(hass: HomeAssistant) -> None:

    async def _handle_update_field(call: ServiceCall) -> ServiceResponse:
        """Handle the update_field service call."""
        payload = {
            key: value
            for key, value in call.data.items()
            if key not in _TARGET_KEYS
        }
        results: dict[str, Any] = {}
        for entry_id, sim in _targeted_simulators(hass, call).items():
            try:
                update = sim.apply_request(payload)
            except FieldError as err:
                _LOGGER.warning("Rejected field update for %s: %s", entry_id, err)
                raise ServiceValidationError(str(err)) from err
            results[entry_id] = update.as_dict()
        return results

    async def _handle_get_fields(call: ServiceCall) -> ServiceResponse:
        """Handle the get_fields service call."""
        return {
            entry_id: sim.fields_snapshot()
            for entry_id, sim in _targeted_simulators(hass, call).items()
        }

    hass.services.async_register(
        DOMAIN,
        SERVICE_UPDATE_FIELD,
        _handle_update_field,
        schema=_UPDATE_FIELD_SERVICE_SCHEMA,
        supports_response=SupportsResponse.OPTIONAL,
    )
    hass.services.async_register(
        DOMAIN,
        SERVICE_GET_FIELDS,
        _handle_get_fields,
        schema=_GET_FIELDS_SERVICE_SCHEMA,
        supports_response=SupportsResponse.ONLY,
    )


# ---------------------------------------------------------------------------
# Coordinator
# ---------------------------------------------------------------------------

class SolarThermalSimulator:
    """
    Owns one SimulationState and drives it on a fixed timestep.

    Responsibilities:
    - Build the state from config (panel efficiency variant).
    - Tick geometry then thermal once per interval, never reentrantly.
    - Route every external read/write through field_access.
    - Notify listeners (push, not poll) on every tick and on every write.

    Everything runs on the Home Assistant event loop, so entity writes,
    service calls and ticks are serialised without a lock.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        entry: ConfigEntry,
        config: dict[str, Any],
    ) -> None:
        self.hass = hass
        self.entry = entry
        self.config = config

        self.tick_seconds: float = float(config.get(CONF_TICK_SECONDS, DEFAULT_TICK_SECONDS))
        self.panel_variant: str = config.get(
            CONF_PANEL_EFFICIENCY_VARIANT, DEFAULT_PANEL_EFFICIENCY_VARIANT
        )
        efficiency = PANEL_EFFICIENCY_VARIANTS.get(
            self.panel_variant, PANEL_EFFICIENCY_VARIANTS[DEFAULT_PANEL_EFFICIENCY_VARIANT]
        )

        self.state: SimulationState | None = SimulationState.with_panel_efficiency(efficiency)
        # Capacity reflects the tank geometry before the first tick
        update_geometry(self.state)
        self.heat_flows = HeatFlows()
        self.tick_count: int = 0

        self._ticking: bool = False
        self._listeners: list = []
        self._unsub_interval = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @callback
    def async_start(self) -> None:
        """Start the fixed-step loop."""
        self._unsub_interval = async_track_time_interval(
            self.hass,
            self._async_tick,
            timedelta(seconds=self.tick_seconds),
        )
        _LOGGER.info(
            "Solar thermal simulation started: dt=%.3fs panel_variant=%s",
            self.tick_seconds,
            self.panel_variant,
        )

    @callback
    def async_stop(self) -> None:
        if self._unsub_interval:
            self._unsub_interval()
            self._unsub_interval = None
        # Teardown: no state, no further ticks
        self.state = None
        _LOGGER.info("Solar thermal simulation stopped after %d ticks", self.tick_count)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    @callback
    def _async_tick(self, _now) -> None:
        self.tick()

    def tick(self, dt: float | None = None) -> bool:
        """
        Run one step. Returns False when skipped (no state, or a tick is
        already in progress).
        """
        if self.state is None or self._ticking:
            return False
        self._ticking = True
        try:
            self.heat_flows = run_tick(self.state, self.tick_seconds if dt is None else dt)
            self.tick_count += 1
        finally:
            self._ticking = False
        self._notify_listeners()
        return True

    # ------------------------------------------------------------------
    # Field access (unified API for entities and services)
    # ------------------------------------------------------------------

    def get_field(self, name: str) -> BoundedField | None:
        """Copy of the named field; writes must go through set_field."""
        if self.state is None:
            return None
        field = get_field(self.state, name)
        return replace(field) if field is not None else None

    def set_field(self, name: str, value: float) -> FieldUpdate:
        update = set_field(self._require_state(), name, value)
        self._notify_listeners()
        return update

    def apply_request(self, payload: Any) -> FieldUpdate:
        update = apply_update_request(self._require_state(), payload)
        _LOGGER.debug("%s", update.message)
        self._notify_listeners()
        return update

    def fields_snapshot(self) -> dict[str, dict]:
        if self.state is None:
            return {}
        return enumerate_fields(self.state)

    def _require_state(self) -> SimulationState:
        if self.state is None:
            raise StateUnavailableError
        return self.state

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def register_listener(self, cb) -> callback:
        self._listeners.append(cb)

        @callback
        def unsubscribe():
            if cb in self._listeners:
                self._listeners.remove(cb)

        return unsubscribe

    @callback
    def _notify_listeners(self) -> None:
        for cb in self._listeners:
            cb()
